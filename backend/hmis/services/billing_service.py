"""
账单服务 - BillingLedger 在数据库会话上的装配
"""
from typing import Any, Dict, List
import logging
from sqlalchemy.orm import Session

from hmis.models.schemas import BillCreate, BillUpdate
from hmis.services.patient_service import PatientService, patient_ref
from hmis.services.sql_store import SqlRecordStore, record_locks
from hmis_core.domain.billing import Bill, BillingLedger

logger = logging.getLogger(__name__)


class BillingService:
    """账单服务"""

    def __init__(self, db: Session, event_publisher=None):
        self.db = db
        self.patients = PatientService(db)
        self.ledger = BillingLedger(
            SqlRecordStore(db), locks=record_locks, event_publisher=event_publisher
        )

    def get_bills(self) -> List[Bill]:
        return self.ledger.list_bills()

    def get_bill(self, bill_id: int) -> Bill:
        return self.ledger.get(bill_id)

    def get_patient_bills(self, patient_id: int) -> List[Bill]:
        patient = self.patients.require_patient(patient_id)
        return self.ledger.list_for_patient(patient_ref(patient.id))

    def create_bill(self, data: BillCreate, created_by: int = None) -> Bill:
        """创建账单；患者必须存在，记录创建人"""
        patient = self.patients.require_patient(data.patient_id)
        return self.ledger.create(
            patient_ref(patient.id),
            [item.model_dump() for item in data.line_items],
            data.discount_percent,
            data.tax_rate_percent,
            data.payment_status,
            bill_type=data.bill_type,
            payment_method=data.payment_method,
            created_by=created_by,
        )

    def update_bill(self, bill_id: int, data: BillUpdate) -> Bill:
        """修订账单：金额字段触发重新推导，支付字段不触发"""
        return self.ledger.revise(bill_id, data.model_dump(exclude_unset=True))

    def delete_bill(self, bill_id: int) -> None:
        self.ledger.delete(bill_id)

    def with_details(self, bill: Bill, names: Dict[str, str] = None) -> Dict[str, Any]:
        """账单响应数据，附带患者姓名与明细金额"""
        if names is None:
            names = self.patients.get_names([bill.patient_ref])
        return {
            'id': bill.id,
            'patient_ref': bill.patient_ref,
            'patient_name': names.get(bill.patient_ref),
            'bill_type': bill.bill_type,
            'line_items': [
                {
                    'description': item.description,
                    'quantity': item.quantity,
                    'rate': item.rate,
                    'amount': item.amount,
                }
                for item in bill.line_items
            ],
            'discount_percent': bill.discount_percent,
            'tax_rate_percent': bill.tax_rate_percent,
            'subtotal': bill.subtotal,
            'tax_amount': bill.tax_amount,
            'discount_amount': bill.discount_amount,
            'total': bill.total,
            'payment_status': bill.payment_status.value,
            'payment_method': bill.payment_method,
            'created_by': bill.created_by,
            'version': bill.version,
            'created_at': bill.created_at,
            'updated_at': bill.updated_at,
        }

    def with_details_list(self, bills: List[Bill]) -> List[Dict[str, Any]]:
        names = self.patients.get_names(list({b.patient_ref for b in bills}))
        return [self.with_details(bill, names) for bill in bills]


__all__ = ["BillingService"]
