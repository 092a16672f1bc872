"""
患者管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hmis.database import get_db
from hmis.models.ontology import User
from hmis.models.schemas import PatientCreate, PatientUpdate, PatientResponse
from hmis.routers.errors import to_http_exception
from hmis.security.auth import get_current_user, require_admin
from hmis.services.patient_service import PatientService
from hmis_core.errors import HMISError

router = APIRouter(prefix="/patients", tags=["患者管理"])


@router.get("", response_model=List[PatientResponse])
def list_patients(
    q: Optional[str] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取患者列表（q 按姓名、病历号、电话搜索）"""
    return PatientService(db).get_patients(q, limit)


@router.get("/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取患者详情"""
    try:
        return PatientService(db).require_patient(patient_id)
    except HMISError as e:
        raise to_http_exception(e)


@router.post("", response_model=PatientResponse)
def create_patient(
    data: PatientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """创建患者"""
    return PatientService(db).create_patient(data)


@router.put("/{patient_id}", response_model=PatientResponse)
def update_patient(
    patient_id: int,
    data: PatientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """更新患者"""
    try:
        return PatientService(db).update_patient(patient_id, data)
    except HMISError as e:
        raise to_http_exception(e)


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """删除患者"""
    try:
        PatientService(db).delete_patient(patient_id)
        return {"message": "Patient deleted"}
    except HMISError as e:
        raise to_http_exception(e)
