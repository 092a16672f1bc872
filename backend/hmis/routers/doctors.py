"""
医生管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hmis.database import get_db
from hmis.models.ontology import User
from hmis.models.schemas import DoctorCreate, DoctorUpdate, DoctorResponse
from hmis.routers.errors import to_http_exception
from hmis.security.auth import get_current_user, require_admin
from hmis.services.doctor_service import DoctorService
from hmis_core.errors import HMISError

router = APIRouter(prefix="/doctors", tags=["医生管理"])


@router.get("", response_model=List[DoctorResponse])
def list_doctors(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取医生列表"""
    return DoctorService(db).get_doctors(q)


@router.get("/search/{query}", response_model=List[DoctorResponse])
def search_doctors(
    query: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """按姓名或专科搜索医生"""
    return DoctorService(db).get_doctors(query)


@router.get("/{doctor_id}", response_model=DoctorResponse)
def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取医生详情"""
    try:
        return DoctorService(db).require_doctor(doctor_id)
    except HMISError as e:
        raise to_http_exception(e)


@router.post("", response_model=DoctorResponse)
def create_doctor(
    data: DoctorCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """创建医生"""
    try:
        return DoctorService(db).create_doctor(data)
    except HMISError as e:
        raise to_http_exception(e)


@router.put("/{doctor_id}", response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    data: DoctorUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """更新医生"""
    try:
        return DoctorService(db).update_doctor(doctor_id, data)
    except HMISError as e:
        raise to_http_exception(e)


@router.delete("/{doctor_id}")
def delete_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """删除医生"""
    try:
        DoctorService(db).delete_doctor(doctor_id)
        return {"message": "Doctor deleted"}
    except HMISError as e:
        raise to_http_exception(e)
