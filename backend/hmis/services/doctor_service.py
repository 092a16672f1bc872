"""
医生服务 - 医生档案的增删改查与搜索
"""
from typing import List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hmis.models.ontology import Doctor, PathologyReport
from hmis.models.schemas import DoctorCreate, DoctorUpdate
from hmis_core.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class DoctorService:
    """医生服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_doctors(self, q: Optional[str] = None) -> List[Doctor]:
        """获取医生列表，按姓氏排序；q 按姓名、专科模糊搜索"""
        query = self.db.query(Doctor)
        if q:
            pattern = f"%{q}%"
            query = query.filter(or_(
                Doctor.first_name.ilike(pattern),
                Doctor.last_name.ilike(pattern),
                Doctor.specialization.ilike(pattern),
            ))
        return query.order_by(Doctor.last_name, Doctor.first_name).all()

    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.id == doctor_id).first()

    def require_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.get_doctor(doctor_id)
        if not doctor:
            raise NotFoundError("doctors", doctor_id, "Doctor not found")
        return doctor

    def _commit(self, doctor_id=None) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("a doctor with this email already exists",
                                table="doctors", record_id=doctor_id)

    def create_doctor(self, data: DoctorCreate) -> Doctor:
        doctor = Doctor(**data.model_dump())
        self.db.add(doctor)
        self._commit()
        self.db.refresh(doctor)
        logger.info(f"Doctor {doctor.first_name} {doctor.last_name} registered")
        return doctor

    def update_doctor(self, doctor_id: int, data: DoctorUpdate) -> Doctor:
        doctor = self.require_doctor(doctor_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(doctor, key, value)
        self._commit(doctor_id)
        self.db.refresh(doctor)
        return doctor

    def delete_doctor(self, doctor_id: int) -> None:
        """删除医生；仍有关联病理报告时不允许删除"""
        doctor = self.require_doctor(doctor_id)
        has_reports = self.db.query(PathologyReport.id).filter(
            PathologyReport.doctor_id == doctor_id
        ).first()
        if has_reports:
            raise ConflictError("cannot delete a doctor with pathology reports",
                                table="doctors", record_id=doctor_id)
        self.db.delete(doctor)
        self.db.commit()
        logger.info(f"Doctor {doctor_id} deleted")


__all__ = ["DoctorService"]
