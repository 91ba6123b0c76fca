"""
Typed exception hierarchy for the dairy kernel.

Every error has a typed class (catch by type, not by message), a ``code``
class attribute (machine-readable, safe to surface to an operator UI) and
structured attributes set in ``__init__`` so that the JSON log formatter
can emit them as ``exc_*`` fields.

Hierarchy::

    DairyKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidPhoneError
    |   +-- InvalidPinError
    |
    +-- StoreError
    |   +-- RecordNotFoundError
    |
    +-- LedgerError
    |   +-- InvalidLedgerAmountError
    |   +-- LedgerConflictError
    |
    +-- BillingError
    |   +-- InvalidBillingPeriodError
    |   +-- DuplicateInvoiceError
    |
    +-- ScheduleError
    |   +-- InvalidScheduleError
    |
    +-- ConcurrencyError
    |   +-- SequenceConflictError
    |
    +-- BatchError
        +-- TaskNotRegisteredError
        +-- JobAlreadyRunError

Batch operations (scheduler, invoice generator, cattle sweep) never let
these escape: they are caught per item, logged, and turned into strings on
the result's ``errors`` tuple.  Validation errors are raised to the caller
before any write.
"""

from datetime import date
from decimal import Decimal


class DairyKernelError(Exception):
    """
    Base exception for all dairy kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "DAIRY_KERNEL_ERROR"


# Validation


class ValidationError(DairyKernelError):
    """Input rejected before any write."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Amount is not a finite, positive decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, field: str = "amount"):
        self.amount = str(amount)
        self.field = field
        super().__init__(f"Invalid {field}: {amount!r} (must be a positive amount)")


class InvalidPhoneError(ValidationError):
    """Phone number does not reduce to exactly 10 digits."""

    code: str = "INVALID_PHONE"

    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Invalid phone number: {phone!r} (expected 10 digits)")


class InvalidPinError(ValidationError):
    """PIN is not exactly 6 digits."""

    code: str = "INVALID_PIN"

    def __init__(self) -> None:
        super().__init__("PIN must be exactly 6 digits")


# Store


class StoreError(DairyKernelError):
    """Persistent store access failed."""

    code: str = "STORE_ERROR"


class RecordNotFoundError(StoreError):
    """A row looked up by id does not exist."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found: {record_id}")


# Ledger


class LedgerError(DairyKernelError):
    """Base exception for customer-ledger errors."""

    code: str = "LEDGER_ERROR"


class InvalidLedgerAmountError(LedgerError):
    """Entry must carry exactly one positive side (debit XOR credit)."""

    code: str = "INVALID_LEDGER_AMOUNT"

    def __init__(self, debit: Decimal, credit: Decimal):
        self.debit = str(debit)
        self.credit = str(credit)
        super().__init__(
            f"Ledger entry needs exactly one positive side: "
            f"debit={debit}, credit={credit}"
        )


class LedgerConflictError(LedgerError):
    """Another writer appended to the customer's ledger first.

    Raised when the chain position read as the head was claimed between
    the read and the insert.  The caller rolls back and may retry.
    """

    code: str = "LEDGER_CONFLICT"

    def __init__(self, customer_id: str, chain_position: int):
        self.customer_id = customer_id
        self.chain_position = chain_position
        super().__init__(
            f"Ledger head moved for customer {customer_id}: "
            f"position {chain_position} already taken"
        )


# Billing


class BillingError(DairyKernelError):
    """Base exception for invoicing errors."""

    code: str = "BILLING_ERROR"


class InvalidBillingPeriodError(BillingError):
    """Year/month pair does not name a calendar month."""

    code: str = "INVALID_BILLING_PERIOD"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Invalid billing period: {year}-{month}")


class DuplicateInvoiceError(BillingError):
    """An invoice already exists for the customer and period."""

    code: str = "DUPLICATE_INVOICE"

    def __init__(self, customer_id: str, period_start: date, period_end: date):
        self.customer_id = customer_id
        self.period_start = period_start.isoformat()
        self.period_end = period_end.isoformat()
        super().__init__(
            f"Invoice already exists for customer {customer_id} "
            f"({period_start} to {period_end})"
        )


# Scheduling


class ScheduleError(DairyKernelError):
    """Base exception for delivery-schedule errors."""

    code: str = "SCHEDULE_ERROR"


class InvalidScheduleError(ScheduleError):
    """A stored delivery schedule could not be parsed."""

    code: str = "INVALID_SCHEDULE"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid delivery schedule: {detail}")


# Concurrency


class ConcurrencyError(DairyKernelError):
    """Concurrent writers collided on a guarded row."""

    code: str = "CONCURRENCY_ERROR"


class SequenceConflictError(ConcurrencyError):
    """Two writers tried to create the same sequence counter."""

    code: str = "SEQUENCE_CONFLICT"

    def __init__(self, sequence_name: str):
        self.sequence_name = sequence_name
        super().__init__(f"Sequence counter created concurrently: {sequence_name}")


# Batch automation


class BatchError(DairyKernelError):
    """Base exception for automation job errors."""

    code: str = "BATCH_ERROR"


class TaskNotRegisteredError(BatchError):
    """No automation task is registered under the requested type."""

    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, task_type: str, available: tuple[str, ...] = ()):
        self.task_type = task_type
        self.available = list(available)
        super().__init__(
            f"No task registered for type '{task_type}'. "
            f"Available: {sorted(available)}"
        )


class JobAlreadyRunError(BatchError):
    """A job run with the same idempotency key already exists."""

    code: str = "JOB_ALREADY_RUN"

    def __init__(self, idempotency_key: str, existing_run_id: str):
        self.idempotency_key = idempotency_key
        self.existing_run_id = existing_run_id
        super().__init__(
            f"Job with idempotency key '{idempotency_key}' already ran "
            f"(run {existing_run_id})"
        )
