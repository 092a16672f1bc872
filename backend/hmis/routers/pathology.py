"""
病理报告路由
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hmis.database import get_db
from hmis.models.ontology import User
from hmis.models.schemas import PathologyReportCreate, PathologyReportUpdate, PathologyReportResponse
from hmis.routers.errors import to_http_exception
from hmis.security.auth import get_current_user, require_admin
from hmis.services.pathology_service import PathologyService
from hmis_core.errors import HMISError

router = APIRouter(prefix="/pathology", tags=["病理报告"])


@router.get("", response_model=List[PathologyReportResponse])
def list_reports(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取全部病理报告"""
    return [PathologyService.with_details(r) for r in PathologyService(db).get_reports()]


@router.get("/patient/{patient_id}", response_model=List[PathologyReportResponse])
def list_patient_reports(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取某患者的病理报告"""
    try:
        reports = PathologyService(db).get_patient_reports(patient_id)
        return [PathologyService.with_details(r) for r in reports]
    except HMISError as e:
        raise to_http_exception(e)


@router.get("/{report_id}", response_model=PathologyReportResponse)
def get_report(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取报告详情"""
    try:
        return PathologyService.with_details(PathologyService(db).get_report(report_id))
    except HMISError as e:
        raise to_http_exception(e)


@router.post("", response_model=PathologyReportResponse)
def create_report(
    data: PathologyReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """创建病理报告"""
    service = PathologyService(db)
    try:
        report = service.create_report(data, created_by=current_user.id)
        return PathologyService.with_details(service.get_report(report.id))
    except HMISError as e:
        raise to_http_exception(e)


@router.put("/{report_id}", response_model=PathologyReportResponse)
def update_report(
    report_id: int,
    data: PathologyReportUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """更新病理报告"""
    try:
        return PathologyService.with_details(PathologyService(db).update_report(report_id, data))
    except HMISError as e:
        raise to_http_exception(e)


@router.delete("/{report_id}")
def delete_report(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """删除病理报告"""
    try:
        PathologyService(db).delete_report(report_id)
        return {"message": "Report deleted"}
    except HMISError as e:
        raise to_http_exception(e)
