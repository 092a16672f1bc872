"""
病理报告服务
报告关联患者（必填）与医生（可选），列表按检验日期倒序
"""
from typing import Any, Dict, List
import logging

from sqlalchemy.orm import Session, joinedload

from hmis.models.ontology import PathologyReport
from hmis.models.schemas import PathologyReportCreate, PathologyReportUpdate
from hmis.services.doctor_service import DoctorService
from hmis.services.patient_service import PatientService
from hmis_core.domain.common import utcnow
from hmis_core.errors import NotFoundError

logger = logging.getLogger(__name__)


class PathologyService:
    """病理报告服务"""

    def __init__(self, db: Session):
        self.db = db
        self.patients = PatientService(db)
        self.doctors = DoctorService(db)

    def _query(self):
        return self.db.query(PathologyReport).options(
            joinedload(PathologyReport.patient),
            joinedload(PathologyReport.doctor),
            joinedload(PathologyReport.creator),
        )

    def get_reports(self) -> List[PathologyReport]:
        return self._query().order_by(
            PathologyReport.test_date.desc(), PathologyReport.id.desc()
        ).all()

    def get_patient_reports(self, patient_id: int) -> List[PathologyReport]:
        self.patients.require_patient(patient_id)
        return self._query().filter(PathologyReport.patient_id == patient_id).order_by(
            PathologyReport.test_date.desc(), PathologyReport.id.desc()
        ).all()

    def get_report(self, report_id: int) -> PathologyReport:
        report = self._query().filter(PathologyReport.id == report_id).first()
        if not report:
            raise NotFoundError("pathology_reports", report_id, "Report not found")
        return report

    def create_report(self, data: PathologyReportCreate, created_by: int = None) -> PathologyReport:
        """创建报告；患者必须存在，指定医生时医生也必须存在"""
        self.patients.require_patient(data.patient_id)
        if data.doctor_id is not None:
            self.doctors.require_doctor(data.doctor_id)

        now = utcnow()
        values = data.model_dump()
        values["test_date"] = values["test_date"] or now
        values["sample_collection_date"] = values["sample_collection_date"] or now
        report = PathologyReport(**values, created_by=created_by)
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        if report.is_critical:
            logger.warning(f"Critical {report.test_type} result recorded for patient {report.patient_id}")
        else:
            logger.info(f"Pathology report {report.id} created for patient {report.patient_id}")
        return report

    def update_report(self, report_id: int, data: PathologyReportUpdate) -> PathologyReport:
        report = self.get_report(report_id)
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("doctor_id") is not None:
            self.doctors.require_doctor(update_data["doctor_id"])
        for key, value in update_data.items():
            setattr(report, key, value)
        report.updated_at = utcnow()
        self.db.commit()
        return self.get_report(report_id)

    def delete_report(self, report_id: int) -> None:
        report = self.get_report(report_id)
        self.db.delete(report)
        self.db.commit()
        logger.info(f"Pathology report {report_id} deleted")

    @staticmethod
    def with_details(report: PathologyReport) -> Dict[str, Any]:
        """报告响应数据，附带患者、医生、创建人"""
        doctor = report.doctor
        return {
            'id': report.id,
            'patient_id': report.patient_id,
            'patient_name': report.patient.full_name if report.patient else None,
            'patient_code': report.patient.patient_code if report.patient else None,
            'doctor_id': report.doctor_id,
            'doctor_name': f"{doctor.first_name} {doctor.last_name}" if doctor else None,
            'doctor_specialization': doctor.specialization if doctor else None,
            'test_type': report.test_type,
            'test_date': report.test_date,
            'sample_collection_date': report.sample_collection_date,
            'results': report.results,
            'normal_ranges': report.normal_ranges,
            'remarks': report.remarks,
            'is_critical': bool(report.is_critical),
            'created_by': report.created_by,
            'created_by_name': report.creator.username if report.creator else None,
            'created_at': report.created_at,
            'updated_at': report.updated_at,
        }


__all__ = ["PathologyService"]
