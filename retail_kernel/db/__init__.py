"""Database layer - engine, base classes, types, and append-only enforcement."""

from retail_kernel.db.base import UUID, AppendOnly, Base, TrackedBase, UUIDString
from retail_kernel.db.engine import create_tables, get_engine, get_session
from retail_kernel.db.types import LongText, Money, Quantity, ShortCode

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "AppendOnly",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "ShortCode",
    "LongText",
]
