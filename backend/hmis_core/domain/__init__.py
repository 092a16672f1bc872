"""
hmis_core.domain - 账单与病房占用领域
"""
from hmis_core.domain.billing import (
    PaymentStatus,
    BillLineItem,
    BillTotals,
    Bill,
    FinancialPatch,
    StatusPatch,
    BillPatch,
    compute_totals,
    create_bill,
    revise_bill,
    patch_from_mapping,
    BillingLedger,
)
from hmis_core.domain.room import (
    RoomType,
    OccupancyState,
    Room,
    RoomOccupancy,
)

__all__ = [
    "PaymentStatus",
    "BillLineItem",
    "BillTotals",
    "Bill",
    "FinancialPatch",
    "StatusPatch",
    "BillPatch",
    "compute_totals",
    "create_bill",
    "revise_bill",
    "patch_from_mapping",
    "BillingLedger",
    "RoomType",
    "OccupancyState",
    "Room",
    "RoomOccupancy",
]
