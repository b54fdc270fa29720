"""Domain models for the dairy kernel."""

from dairy_kernel.models.advance import (
    OUTSTANDING_ADVANCE_STATUSES,
    VALID_ADVANCE_TRANSITIONS,
    Advance,
    AdvanceStatus,
)
from dairy_kernel.models.farmer import Farmer
from dairy_kernel.models.member import DEFAULT_MEMBER_RATE, Member
from dairy_kernel.models.milk_collection import MilkCollection, Shift
from dairy_kernel.models.payment import (
    FarmerPayment,
    FarmerPaymentAdvance,
    FarmerPaymentCollection,
    MemberPayment,
    MemberPaymentEntry,
    PaymentMethod,
)
from dairy_kernel.models.selling_entry import SellingEntry

__all__ = [
    "Advance",
    "AdvanceStatus",
    "OUTSTANDING_ADVANCE_STATUSES",
    "VALID_ADVANCE_TRANSITIONS",
    "Farmer",
    "Member",
    "DEFAULT_MEMBER_RATE",
    "MilkCollection",
    "Shift",
    "SellingEntry",
    "FarmerPayment",
    "FarmerPaymentAdvance",
    "FarmerPaymentCollection",
    "MemberPayment",
    "MemberPaymentEntry",
    "PaymentMethod",
]
