"""
Status and category vocabularies shared by models, engines and services.

All are ``str`` enums so that ``.value`` is exactly what is stored in the
database and compared in queries.
"""

from enum import Enum


class SubscriptionType(str, Enum):
    DAILY = "daily"
    ALTERNATE = "alternate"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    MISSED = "missed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class LedgerTransactionType(str, Enum):
    DELIVERY = "delivery"
    PAYMENT = "payment"
    INVOICE = "invoice"
    ADVANCE = "advance"
    ADJUSTMENT = "adjustment"


class CattleType(str, Enum):
    COW = "cow"
    BULL = "bull"
    HEIFER = "heifer"
    CALF = "calf"


class CattleStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    DECEASED = "deceased"


class LactationStatus(str, Enum):
    LACTATING = "lactating"
    DRY = "dry"
    PREGNANT = "pregnant"
    CALVING = "calving"


class BreedingRecordType(str, Enum):
    HEAT = "heat"
    INSEMINATION = "insemination"
    PREGNANCY_CHECK = "pregnancy_check"
    CALVING = "calving"
    ABORTION = "abortion"


class MilkSession(str, Enum):
    MORNING = "morning"
    EVENING = "evening"
