"""
病房服务 - RoomOccupancy 在数据库会话上的装配
占用规则全部在 hmis_core.domain.room 中；这里只负责患者校验与响应组装
"""
from typing import Any, Dict, List, Optional
import logging
from sqlalchemy.orm import Session

from hmis.models.schemas import RoomCreate, RoomUpdate
from hmis.services.patient_service import PatientService, patient_ref
from hmis.services.sql_store import SqlRecordStore, record_locks
from hmis_core.domain.room import Room, RoomOccupancy

logger = logging.getLogger(__name__)


class RoomService:
    """病房服务"""

    def __init__(self, db: Session, event_publisher=None):
        self.db = db
        self.patients = PatientService(db)
        self.occupancy = RoomOccupancy(
            SqlRecordStore(db), locks=record_locks, event_publisher=event_publisher
        )

    # ============== 查询 ==============

    def get_rooms(self) -> List[Room]:
        return self.occupancy.list_rooms()

    def get_available_rooms(self) -> List[Room]:
        return self.occupancy.list_available()

    def get_room(self, room_id: int) -> Room:
        return self.occupancy.get(room_id)

    def get_summary(self) -> Dict[str, int]:
        return self.occupancy.occupancy_summary()

    def with_patient(self, room: Room, names: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """病房响应数据，附带当前患者姓名"""
        if names is None:
            names = self.patients.get_names([room.current_patient_ref]) if room.current_patient_ref else {}
        return {
            'id': room.id,
            'room_number': room.room_number,
            'room_type': room.room_type.value,
            'charges_per_day': room.charges_per_day,
            'occupancy_state': room.occupancy_state.value,
            'current_patient_ref': room.current_patient_ref,
            'current_patient_name': names.get(room.current_patient_ref),
            'occupied_since': room.occupied_since,
        }

    def with_patients(self, rooms: List[Room]) -> List[Dict[str, Any]]:
        names = self.patients.get_names([r.current_patient_ref for r in rooms if r.current_patient_ref])
        return [self.with_patient(room, names) for room in rooms]

    def get_room_with_patient(self, room_id: int) -> Dict[str, Any]:
        return self.with_patient(self.get_room(room_id))

    # ============== 维护 ==============

    def create_room(self, data: RoomCreate) -> Room:
        return self.occupancy.register(data.room_number, data.room_type, data.charges_per_day)

    def update_room(self, room_id: int, data: RoomUpdate) -> Room:
        update_data = data.model_dump(exclude_unset=True)
        return self.occupancy.update_details(
            room_id,
            room_type=update_data.get('room_type'),
            charges_per_day=update_data.get('charges_per_day'),
        )

    def delete_room(self, room_id: int) -> None:
        self.occupancy.delete(room_id)

    # ============== 占用 ==============

    def assign_room(self, room_id: int, patient_id: int) -> Room:
        """分配病房；患者必须存在"""
        patient = self.patients.require_patient(patient_id)
        return self.occupancy.assign(room_id, patient_ref(patient.id))

    def release_room(self, room_id: int) -> Room:
        return self.occupancy.release(room_id)

    def transfer_room(self, room_id: int, from_patient_id: int, to_patient_id: int) -> Room:
        """病房移交；目标患者必须存在"""
        target = self.patients.require_patient(to_patient_id)
        return self.occupancy.transfer(room_id, patient_ref(from_patient_id), patient_ref(target.id))


__all__ = ["RoomService"]
