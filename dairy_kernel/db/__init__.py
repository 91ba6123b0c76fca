"""Database layer - engine, base classes and column types."""

from dairy_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from dairy_kernel.db.engine import create_tables, get_engine, get_session
from dairy_kernel.db.types import Money, Quantity, round_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "round_money",
]
