"""
Module: dairy_kernel.models.farmer
Responsibility: ORM persistence for farmers -- the counterparties the owner
    buys milk from.  Holds identity, running purchase totals, the outstanding
    advance total, and the carried-forward settlement balance.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique per owner (uq_farmer_owner_code).
    - current_balance follows the FarmerLedgerBalance sign convention:
      positive means the owner still owes the farmer after the last
      settlement, negative means the farmer was overpaid.
    - current_balance is only ever overwritten by a settlement commit or
      nudged by a settlement correction; line items never touch it.
    - version is the optimistic lock column.  Every UPDATE is conditional on
      the version that was read, so two settlements racing on the same
      farmer cannot both win.

Failure modes:
    - IntegrityError on duplicate (owner_id, code).
    - StaleDataError on a lost optimistic-lock race (mapped to
      OptimisticLockError by the unit of work).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.db.types import Money, Quantity, Rate, ShortCode


class Farmer(TrackedBase):
    """
    Milk supplier with a running settlement balance.

    Guarantees:
        - total_purchase and total_liters track every recorded collection,
          paid or not, and are reversed when a collection is deleted.
        - pending_amount is unpaid collection money plus outstanding advance
          money; a settlement zeroes it.
        - is_active = False hides the farmer from all settlement operations.
    """

    __tablename__ = "farmers"

    __table_args__ = (
        UniqueConstraint("owner_id", "code", name="uq_farmer_owner_code"),
        Index("idx_farmer_owner_active", "owner_id", "is_active"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    code: Mapped[ShortCode] = mapped_column(
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    mobile: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    address: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    rate_per_liter: Mapped[Rate] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    total_purchase: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    total_liters: Mapped[Quantity] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    # Unpaid collection amounts plus outstanding advance remainders
    pending_amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    # FarmerLedgerBalance carried forward from the last settlement
    current_balance: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Farmer {self.code}: {self.name}>"
