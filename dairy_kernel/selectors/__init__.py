"""Read-only selectors returning frozen DTOs."""

from dairy_kernel.selectors.cattle_selector import CattleSelector
from dairy_kernel.selectors.customer_selector import CustomerSelector
from dairy_kernel.selectors.delivery_selector import DeliverySelector
from dairy_kernel.selectors.invoice_selector import InvoiceSelector
from dairy_kernel.selectors.ledger_selector import LedgerSelector

__all__ = [
    "CattleSelector",
    "CustomerSelector",
    "DeliverySelector",
    "InvoiceSelector",
    "LedgerSelector",
]
