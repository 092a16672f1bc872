"""
账单路由
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hmis.database import get_db
from hmis.models.ontology import User
from hmis.models.schemas import BillCreate, BillUpdate, BillResponse
from hmis.routers.errors import to_http_exception
from hmis.security.auth import get_current_user, require_admin
from hmis.services.billing_service import BillingService
from hmis_core.errors import HMISError

router = APIRouter(prefix="/bills", tags=["账单管理"])


@router.get("", response_model=List[BillResponse])
def list_bills(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取账单列表（最新的在前）"""
    service = BillingService(db)
    return service.with_details_list(service.get_bills())


@router.get("/patient/{patient_id}", response_model=List[BillResponse])
def list_patient_bills(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取患者的账单"""
    service = BillingService(db)
    try:
        return service.with_details_list(service.get_patient_bills(patient_id))
    except HMISError as e:
        raise to_http_exception(e)


@router.get("/{bill_id}", response_model=BillResponse)
def get_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取账单详情"""
    service = BillingService(db)
    try:
        return service.with_details(service.get_bill(bill_id))
    except HMISError as e:
        raise to_http_exception(e)


@router.post("", response_model=BillResponse)
def create_bill(
    data: BillCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """创建账单"""
    service = BillingService(db)
    try:
        bill = service.create_bill(data, created_by=current_user.id)
        return service.with_details(bill)
    except HMISError as e:
        raise to_http_exception(e)


@router.put("/{bill_id}", response_model=BillResponse)
def update_bill(
    bill_id: int,
    data: BillUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """修订账单（金额修订或支付状态修订）"""
    service = BillingService(db)
    try:
        bill = service.update_bill(bill_id, data)
        return service.with_details(bill)
    except HMISError as e:
        raise to_http_exception(e)


@router.delete("/{bill_id}")
def delete_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """删除账单"""
    try:
        BillingService(db).delete_bill(bill_id)
        return {"message": "Bill deleted"}
    except HMISError as e:
        raise to_http_exception(e)
