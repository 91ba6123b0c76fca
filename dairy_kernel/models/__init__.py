"""ORM models for the dairy kernel."""

from dairy_kernel.models.billing import DairySettings, Invoice, Payment
from dairy_kernel.models.cattle import BreedingRecord, Cattle, MilkProduction
from dairy_kernel.models.customer import Customer, Product, SubscriptionLine, Vacation
from dairy_kernel.models.delivery import Delivery, DeliveryItem
from dairy_kernel.models.ledger import LedgerEntry


def import_all_models() -> None:
    """Import every module that declares tables so Base.metadata is complete.

    Includes the sequence counter table and the automation job-run table,
    which live beside the services that own them.
    """
    import dairy_batch.models  # noqa: F401
    import dairy_kernel.services.sequence_service  # noqa: F401


__all__ = [
    "BreedingRecord",
    "Cattle",
    "Customer",
    "DairySettings",
    "Delivery",
    "DeliveryItem",
    "Invoice",
    "LedgerEntry",
    "MilkProduction",
    "Payment",
    "Product",
    "SubscriptionLine",
    "Vacation",
    "import_all_models",
]
