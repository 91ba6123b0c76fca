"""
Dairy Kernel

The persistence and bookkeeping core of the dairy automation system:
- ORM models for customers, deliveries, invoices, ledger and herd
- Append-only customer ledger with a stored running balance
- Locked counter rows for invoice numbering
- Structured JSON logging and a typed exception hierarchy
"""

__version__ = "0.1.0"
