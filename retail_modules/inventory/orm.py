"""
Module: retail_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence for stock locations.

Architecture position: Modules > Inventory > ORM.  Inherits from TrackedBase
    (retail_kernel.db.base).  Ledger rows reference locations by UUID with NO
    foreign key, so the kernel stays independent of this table.

Invariants enforced:
    - ``code`` is unique.
    - At most one active default location (maintained by InventoryService).
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from retail_kernel.db.base import TrackedBase


class LocationModel(TrackedBase):
    """
    ORM model for stock locations.

    Maps to: retail_modules.inventory.models.Location (frozen dataclass).
    """

    __tablename__ = "locations"

    __table_args__ = (
        Index("idx_location_default", "is_default", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(50), unique=True)
    name: Mapped[str] = mapped_column(String(200))
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        """Convert ORM model to frozen Location DTO."""
        from retail_modules.inventory.models import Location
        return Location(
            id=self.id,
            code=self.code,
            name=self.name,
            is_default=self.is_default,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        flag = " default" if self.is_default else ""
        return f"<LocationModel {self.code}{flag}>"
