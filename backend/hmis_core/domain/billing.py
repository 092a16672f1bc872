"""
hmis_core/domain/billing.py

账单领域 - 金额推导与修订

Bill 的四个派生金额字段（subtotal, tax_amount, discount_amount, total）
只能由 compute_totals 从明细、折扣率、税率推导，不允许手工编辑：
- 创建时推导
- FinancialPatch 修订时重新推导
- StatusPatch 修订时保持不变
"""
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import logging

from hmis_core.domain.common import Clock, to_decimal, utcnow
from hmis_core.domain.events import BillChangedData, EventType
from hmis_core.engine.event_bus import Event, event_bus
from hmis_core.errors import NotFoundError, ValidationError
from hmis_core.store.base import Record, RecordStore
from hmis_core.store.locks import KeyedLock

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
ZERO = Decimal("0")


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "Pending"
    PAID = "Paid"
    PARTIAL = "Partial"


# ============== 值对象 ==============

@dataclass(frozen=True)
class BillLineItem:
    """账单明细，进入账单后不可变"""
    description: str
    quantity: Decimal
    rate: Decimal

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.rate

    @classmethod
    def from_value(cls, value: Any, index: int = 0) -> "BillLineItem":
        """从 BillLineItem 或 {description, quantity, rate} 映射构造，并校验取值范围"""
        prefix = f"line_items[{index}]"
        if isinstance(value, BillLineItem):
            description, quantity, rate = value.description, value.quantity, value.rate
        elif isinstance(value, Mapping):
            description = value.get("description")
            quantity = value.get("quantity")
            rate = value.get("rate")
        else:
            raise ValidationError(f"{prefix} must be an object", field=prefix)

        if description is None:
            raise ValidationError(f"{prefix}.description is required", field=f"{prefix}.description")
        quantity = to_decimal(quantity, f"{prefix}.quantity")
        rate = to_decimal(rate, f"{prefix}.rate")
        if quantity <= ZERO:
            raise ValidationError(f"{prefix}.quantity must be positive", field=f"{prefix}.quantity")
        if rate < ZERO:
            raise ValidationError(f"{prefix}.rate must not be negative", field=f"{prefix}.rate")
        return cls(description=str(description), quantity=quantity, rate=rate)

    def to_dict(self) -> Dict[str, str]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "rate": str(self.rate),
        }


@dataclass(frozen=True)
class BillTotals:
    """派生金额"""
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class Bill:
    """
    账单

    id 与 version 在入库前为 None。
    """
    patient_ref: str
    line_items: Tuple[BillLineItem, ...]
    discount_percent: Decimal
    tax_rate_percent: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    bill_type: Optional[str] = None
    payment_method: Optional[str] = None
    created_by: Optional[Any] = None
    id: Optional[Any] = None
    version: Optional[int] = None

    @property
    def totals(self) -> BillTotals:
        return BillTotals(self.subtotal, self.tax_amount, self.discount_amount, self.total)

    def to_record(self) -> Record:
        record = {
            "patient_ref": self.patient_ref,
            "line_items": [item.to_dict() for item in self.line_items],
            "discount_percent": self.discount_percent,
            "tax_rate_percent": self.tax_rate_percent,
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
            "total": self.total,
            "payment_status": self.payment_status.value,
            "bill_type": self.bill_type,
            "payment_method": self.payment_method,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: Record) -> "Bill":
        return cls(
            id=record.get("id"),
            version=record.get("version"),
            patient_ref=record["patient_ref"],
            line_items=tuple(
                BillLineItem(
                    description=item["description"],
                    quantity=Decimal(str(item["quantity"])),
                    rate=Decimal(str(item["rate"])),
                )
                for item in record.get("line_items") or []
            ),
            discount_percent=Decimal(str(record.get("discount_percent") or 0)),
            tax_rate_percent=Decimal(str(record.get("tax_rate_percent") or 0)),
            subtotal=Decimal(str(record.get("subtotal") or 0)),
            tax_amount=Decimal(str(record.get("tax_amount") or 0)),
            discount_amount=Decimal(str(record.get("discount_amount") or 0)),
            total=Decimal(str(record.get("total") or 0)),
            payment_status=PaymentStatus(record.get("payment_status") or PaymentStatus.PENDING.value),
            bill_type=record.get("bill_type"),
            payment_method=record.get("payment_method"),
            created_by=record.get("created_by"),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（JSON 友好）"""
        return {
            "id": self.id,
            "patient_ref": self.patient_ref,
            "line_items": [item.to_dict() for item in self.line_items],
            "discount_percent": str(self.discount_percent),
            "tax_rate_percent": str(self.tax_rate_percent),
            "subtotal": str(self.subtotal),
            "tax_amount": str(self.tax_amount),
            "discount_amount": str(self.discount_amount),
            "total": str(self.total),
            "payment_status": self.payment_status.value,
            "bill_type": self.bill_type,
            "payment_method": self.payment_method,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ============== 修订补丁（标签联合） ==============

@dataclass(frozen=True)
class FinancialPatch:
    """修改金额输入，触发重新推导。未提供的字段沿用原账单的值。"""
    line_items: Optional[Sequence[Any]] = None
    discount_percent: Optional[Any] = None
    tax_rate_percent: Optional[Any] = None

    def is_empty(self) -> bool:
        return self.line_items is None and self.discount_percent is None and self.tax_rate_percent is None


@dataclass(frozen=True)
class StatusPatch:
    """只修改非金额字段，不重新推导"""
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
    bill_type: Optional[str] = None

    def is_empty(self) -> bool:
        return self.payment_status is None and self.payment_method is None and self.bill_type is None


BillPatch = Union[FinancialPatch, StatusPatch]

FINANCIAL_FIELDS = ("line_items", "discount_percent", "tax_rate_percent")
STATUS_FIELDS = ("payment_status", "payment_method", "bill_type")


def parse_payment_status(value: Any) -> PaymentStatus:
    if isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in PaymentStatus)
        raise ValidationError(f"payment_status must be one of: {allowed}", field="payment_status")


def patch_from_mapping(mapping: Mapping[str, Any]) -> BillPatch:
    """
    从键值包（如 HTTP 请求体）构造补丁

    一次修订只能是两种之一：同时包含金额字段和状态字段视为无效输入。
    """
    unknown = [key for key in mapping if key not in FINANCIAL_FIELDS + STATUS_FIELDS]
    if unknown:
        raise ValidationError(f"unknown bill field: {unknown[0]}", field=unknown[0])

    financial = {k: v for k, v in mapping.items() if k in FINANCIAL_FIELDS}
    status = {k: v for k, v in mapping.items() if k in STATUS_FIELDS}
    if financial and status:
        raise ValidationError(
            "a revision changes either charges or payment details, not both",
            field=next(iter(status)),
        )
    if financial:
        return FinancialPatch(**financial)
    if status:
        if status.get("payment_status") is not None:
            status["payment_status"] = parse_payment_status(status["payment_status"])
        return StatusPatch(**status)
    raise ValidationError("empty patch")


# ============== 纯函数 ==============

def _coerce_line_items(line_items: Optional[Iterable[Any]]) -> Tuple[BillLineItem, ...]:
    if line_items is None or isinstance(line_items, (str, bytes, Mapping)):
        raise ValidationError("line_items must be a non-empty list", field="line_items")
    items = tuple(BillLineItem.from_value(item, index) for index, item in enumerate(line_items))
    if not items:
        raise ValidationError("at least one line item is required", field="line_items")
    return items


def _coerce_percent(value: Any, field: str, upper: Optional[Decimal] = None) -> Decimal:
    percent = to_decimal(value, field, default=ZERO)
    if percent < ZERO:
        raise ValidationError(f"{field} must not be negative", field=field)
    if upper is not None and percent > upper:
        raise ValidationError(f"{field} must not exceed {upper}", field=field)
    return percent


def compute_totals(line_items: Iterable[Any], discount_percent: Any = 0,
                   tax_rate_percent: Any = 0) -> BillTotals:
    """
    推导账单金额

    subtotal 按明细顺序从左到右累加；tax 与 discount 均以 subtotal 为基数。

    Raises:
        ValidationError: 明细为空、数量非正、单价为负、折扣/税率为负或非有限值
    """
    items = _coerce_line_items(line_items)
    discount = _coerce_percent(discount_percent, "discount_percent", upper=HUNDRED)
    tax_rate = _coerce_percent(tax_rate_percent, "tax_rate_percent")

    subtotal = ZERO
    for item in items:
        subtotal += item.amount

    tax_amount = subtotal * tax_rate / HUNDRED
    discount_amount = subtotal * discount / HUNDRED
    total = subtotal + tax_amount - discount_amount
    return BillTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total=total,
    )


def create_bill(patient_ref: Any, line_items: Iterable[Any], discount_percent: Any = 0,
                tax_rate_percent: Any = 0, payment_status: Any = None, *,
                now: Optional[datetime] = None, bill_type: Optional[str] = None,
                payment_method: Optional[str] = None, created_by: Any = None) -> Bill:
    """构造新账单（不入库）"""
    if patient_ref is None or str(patient_ref).strip() == "":
        raise ValidationError("patient_ref is required", field="patient_ref")

    items = _coerce_line_items(line_items)
    discount = _coerce_percent(discount_percent, "discount_percent", upper=HUNDRED)
    tax_rate = _coerce_percent(tax_rate_percent, "tax_rate_percent")
    totals = compute_totals(items, discount, tax_rate)
    timestamp = now or utcnow()

    return Bill(
        patient_ref=str(patient_ref),
        line_items=items,
        discount_percent=discount,
        tax_rate_percent=tax_rate,
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        discount_amount=totals.discount_amount,
        total=totals.total,
        payment_status=parse_payment_status(payment_status) if payment_status is not None else PaymentStatus.PENDING,
        bill_type=bill_type,
        payment_method=payment_method,
        created_by=created_by,
        created_at=timestamp,
        updated_at=timestamp,
    )


def revise_bill(existing: Optional[Bill], patch: BillPatch, *, now: Optional[datetime] = None) -> Bill:
    """
    修订账单

    FinancialPatch: 合并后重新推导四个派生金额
    StatusPatch: 原样应用，派生金额保持不变
    """
    if existing is None:
        raise NotFoundError("bills", None, "bill not found")
    timestamp = now or utcnow()

    if isinstance(patch, FinancialPatch):
        if patch.is_empty():
            raise ValidationError("empty patch")
        items = _coerce_line_items(patch.line_items) if patch.line_items is not None else existing.line_items
        discount = (
            _coerce_percent(patch.discount_percent, "discount_percent", upper=HUNDRED)
            if patch.discount_percent is not None else existing.discount_percent
        )
        tax_rate = (
            _coerce_percent(patch.tax_rate_percent, "tax_rate_percent")
            if patch.tax_rate_percent is not None else existing.tax_rate_percent
        )
        totals = compute_totals(items, discount, tax_rate)
        return replace(
            existing,
            line_items=items,
            discount_percent=discount,
            tax_rate_percent=tax_rate,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total=totals.total,
            updated_at=timestamp,
        )

    if isinstance(patch, StatusPatch):
        if patch.is_empty():
            raise ValidationError("empty patch")
        return replace(
            existing,
            payment_status=(
                parse_payment_status(patch.payment_status)
                if patch.payment_status is not None else existing.payment_status
            ),
            payment_method=patch.payment_method if patch.payment_method is not None else existing.payment_method,
            bill_type=patch.bill_type if patch.bill_type is not None else existing.bill_type,
            updated_at=timestamp,
        )

    raise ValidationError(f"unsupported patch type: {type(patch).__name__}")


# ============== 账本服务 ==============

class BillingLedger:
    """
    账单账本 - 在记录存储之上执行创建与修订

    修订的"读取-推导-写回"在单个账单的锁内完成，
    写回时携带 expected_version，跨进程的并发写入会得到 ConflictError。
    """

    TABLE = "bills"

    def __init__(self, store: RecordStore, clock: Optional[Clock] = None,
                 locks: Optional[KeyedLock] = None,
                 event_publisher: Optional[Callable[[Event], None]] = None):
        self._store = store
        self._clock = clock or utcnow
        self._locks = locks or KeyedLock()
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    def create(self, patient_ref: Any, line_items: Iterable[Any], discount_percent: Any = 0,
               tax_rate_percent: Any = 0, payment_status: Any = None, **details: Any) -> Bill:
        """创建并入库"""
        bill = create_bill(
            patient_ref, line_items, discount_percent, tax_rate_percent, payment_status,
            now=self._clock(), **details
        )
        stored = Bill.from_record(self._store.insert(self.TABLE, bill.to_record()))
        logger.info(f"Bill {stored.id} created for patient {stored.patient_ref}: total={stored.total}")
        self._publish(EventType.BILL_CREATED, stored, recomputed=True)
        return stored

    def get(self, bill_id: Any) -> Bill:
        return Bill.from_record(self._store.get(self.TABLE, bill_id))

    def list_bills(self) -> List[Bill]:
        """所有账单，最新的在前"""
        return self._newest_first(self._store.find(self.TABLE))

    def list_for_patient(self, patient_ref: Any) -> List[Bill]:
        """某患者的账单，最新的在前"""
        return self._newest_first(self._store.find(self.TABLE, patient_ref=str(patient_ref)))

    def revise(self, bill_id: Any, patch: Union[BillPatch, Mapping[str, Any]]) -> Bill:
        """修订账单"""
        if not isinstance(patch, (FinancialPatch, StatusPatch)):
            patch = patch_from_mapping(patch)

        with self._locks.hold(self.TABLE, bill_id):
            current = self.get(bill_id)
            revised = revise_bill(current, patch, now=self._clock())
            record = revised.to_record()
            record.pop("created_at", None)
            stored = Bill.from_record(
                self._store.update(self.TABLE, bill_id, record, expected_version=current.version)
            )

        recomputed = isinstance(patch, FinancialPatch)
        logger.info(
            f"Bill {bill_id} revised ({'charges' if recomputed else 'payment details'}): "
            f"total={stored.total}, status={stored.payment_status.value}"
        )
        self._publish(EventType.BILL_REVISED, stored, recomputed=recomputed)
        return stored

    def delete(self, bill_id: Any) -> None:
        with self._locks.hold(self.TABLE, bill_id):
            current = self.get(bill_id)
            self._store.delete(self.TABLE, bill_id, expected_version=current.version)
        logger.info(f"Bill {bill_id} deleted")
        self._publish(EventType.BILL_DELETED, current)

    @staticmethod
    def _newest_first(records: List[Record]) -> List[Bill]:
        bills = [Bill.from_record(r) for r in records]
        return sorted(bills, key=lambda b: (b.created_at, b.id or 0), reverse=True)

    def _publish(self, event_type: EventType, bill: Bill, recomputed: bool = False) -> None:
        self._publish_event(Event(
            event_type=event_type.value,
            timestamp=self._clock(),
            data=BillChangedData(
                bill_id=bill.id,
                patient_ref=bill.patient_ref,
                total=str(bill.total),
                payment_status=bill.payment_status.value,
                recomputed=recomputed,
            ).to_dict(),
            source="billing_ledger",
        ))


__all__ = [
    "PaymentStatus",
    "BillLineItem",
    "BillTotals",
    "Bill",
    "FinancialPatch",
    "StatusPatch",
    "BillPatch",
    "parse_payment_status",
    "patch_from_mapping",
    "compute_totals",
    "create_bill",
    "revise_bill",
    "BillingLedger",
]
