"""
患者服务 - 患者档案的增删改查
病房与账单通过 patient_ref（患者 id 的字符串形式）引用患者
"""
from typing import List, Optional
import logging
import uuid

from sqlalchemy import or_
from sqlalchemy.orm import Session

from hmis.models.ontology import PathologyReport, Patient, Room
from hmis.models.schemas import PatientCreate, PatientUpdate
from hmis_core.domain.common import utcnow
from hmis_core.domain.room import OccupancyState
from hmis_core.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def patient_ref(patient_id: int) -> str:
    """核心层使用的患者引用"""
    return str(patient_id)


class PatientService:
    """患者服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_patients(self, q: Optional[str] = None, limit: int = 100) -> List[Patient]:
        """获取患者列表，q 按姓名、病历号、电话模糊搜索"""
        query = self.db.query(Patient)
        if q:
            pattern = f"%{q}%"
            query = query.filter(or_(
                Patient.full_name.ilike(pattern),
                Patient.patient_code.ilike(pattern),
                Patient.phone.ilike(pattern),
            ))
        return query.order_by(Patient.created_at.desc(), Patient.id.desc()).limit(limit).all()

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.id == patient_id).first()

    def require_patient(self, patient_id: int) -> Patient:
        """获取患者，不存在时抛出 NotFoundError"""
        patient = self.get_patient(patient_id)
        if not patient:
            raise NotFoundError("patients", patient_id, "Patient not found")
        return patient

    def _generate_code(self) -> str:
        return f"PT-{utcnow():%y%m%d}-{uuid.uuid4().hex[:6].upper()}"

    def create_patient(self, data: PatientCreate) -> Patient:
        """创建患者档案"""
        patient = Patient(patient_code=self._generate_code(), **data.model_dump())
        self.db.add(patient)
        self.db.commit()
        self.db.refresh(patient)
        logger.info(f"Patient {patient.patient_code} registered")
        return patient

    def update_patient(self, patient_id: int, data: PatientUpdate) -> Patient:
        """更新患者档案"""
        patient = self.require_patient(patient_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(patient, key, value)
        self.db.commit()
        self.db.refresh(patient)
        return patient

    def delete_patient(self, patient_id: int) -> None:
        """删除患者；仍占用病房时不允许删除"""
        patient = self.require_patient(patient_id)
        occupied = self.db.query(Room).filter(
            Room.occupancy_state == OccupancyState.OCCUPIED.value,
            Room.current_patient_ref == patient_ref(patient.id),
        ).first()
        if occupied:
            raise ConflictError(
                f"patient still occupies room {occupied.room_number}",
                table="patients", record_id=patient_id,
            )
        has_reports = self.db.query(PathologyReport.id).filter(
            PathologyReport.patient_id == patient.id
        ).first()
        if has_reports:
            raise ConflictError(
                "cannot delete a patient with pathology reports",
                table="patients", record_id=patient_id,
            )
        self.db.delete(patient)
        self.db.commit()
        logger.info(f"Patient {patient.patient_code} deleted")

    def get_names(self, refs: List[str]) -> dict:
        """批量获取 patient_ref -> 姓名"""
        ids = [int(ref) for ref in refs if ref and ref.isdigit()]
        if not ids:
            return {}
        rows = self.db.query(Patient.id, Patient.full_name).filter(Patient.id.in_(ids)).all()
        return {patient_ref(pid): name for pid, name in rows}


__all__ = ["PatientService", "patient_ref"]
