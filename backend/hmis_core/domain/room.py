"""
hmis_core/domain/room.py

病房占用领域 - 单一占用者状态机

状态：Available / Occupied
转换：
- assign    Available -> Occupied
- release   Occupied  -> Available
- transfer  Occupied  -> Occupied（仅当前占用者可移交）
删除只允许在 Available 状态下进行。
"""
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

from hmis_core.domain.common import Clock, to_decimal, utcnow
from hmis_core.domain.events import EventType, RoomOccupancyChangedData
from hmis_core.engine.event_bus import Event, event_bus
from hmis_core.engine.state_machine import StateMachine, StateMachineConfig, StateTransition
from hmis_core.errors import ConflictError, ValidationError
from hmis_core.store.base import Record, RecordStore
from hmis_core.store.locks import KeyedLock

logger = logging.getLogger(__name__)


# ============== 状态定义 ==============

class RoomType(str, Enum):
    """病房类型"""
    GENERAL = "General"
    SEMI_PRIVATE = "Semi-Private"
    PRIVATE = "Private"
    ICU = "ICU"


class OccupancyState(str, Enum):
    """占用状态"""
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"


OCCUPANCY_MACHINE = StateMachineConfig(
    name="Room",
    states=[OccupancyState.AVAILABLE.value, OccupancyState.OCCUPIED.value],
    transitions=[
        StateTransition(
            from_state=OccupancyState.AVAILABLE.value,
            to_state=OccupancyState.OCCUPIED.value,
            trigger="assign",
        ),
        StateTransition(
            from_state=OccupancyState.OCCUPIED.value,
            to_state=OccupancyState.AVAILABLE.value,
            trigger="release",
        ),
        StateTransition(
            from_state=OccupancyState.OCCUPIED.value,
            to_state=OccupancyState.OCCUPIED.value,
            trigger="transfer",
            condition=lambda ctx: ctx.get("current_patient_ref") == ctx.get("from_patient"),
        ),
    ],
    initial_state=OccupancyState.AVAILABLE.value,
)


def parse_room_type(value: Any) -> RoomType:
    if isinstance(value, RoomType):
        return value
    try:
        return RoomType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in RoomType)
        raise ValidationError(f"room_type must be one of: {allowed}", field="room_type")


def _require_ref(value: Any, field: str) -> str:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required", field=field)
    return str(value)


# ============== Room 值对象 ==============

@dataclass(frozen=True)
class Room:
    """
    病房

    构造时校验占用不变量：
    Occupied <=> current_patient_ref 非空 <=> occupied_since 非空
    """
    room_number: str
    room_type: RoomType
    charges_per_day: Decimal
    occupancy_state: OccupancyState = OccupancyState.AVAILABLE
    current_patient_ref: Optional[str] = None
    occupied_since: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[Any] = None
    version: Optional[int] = None

    def __post_init__(self):
        occupied = self.occupancy_state == OccupancyState.OCCUPIED
        if occupied != (self.current_patient_ref is not None) or occupied != (self.occupied_since is not None):
            raise ValidationError(
                f"room {self.room_number} has inconsistent occupancy: "
                f"state={self.occupancy_state.value}, patient={self.current_patient_ref}, "
                f"since={self.occupied_since}",
                field="occupancy_state",
            )

    @property
    def is_occupied(self) -> bool:
        return self.occupancy_state == OccupancyState.OCCUPIED

    def machine(self) -> StateMachine:
        return StateMachine(OCCUPANCY_MACHINE, current_state=self.occupancy_state.value)

    def occupancy_patch(self) -> Record:
        """占用相关字段（写回存储用）"""
        return {
            "occupancy_state": self.occupancy_state.value,
            "current_patient_ref": self.current_patient_ref,
            "occupied_since": self.occupied_since,
            "updated_at": self.updated_at,
        }

    def to_record(self) -> Record:
        record = {
            "room_number": self.room_number,
            "room_type": self.room_type.value,
            "charges_per_day": self.charges_per_day,
            "created_at": self.created_at,
            **self.occupancy_patch(),
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: Record) -> "Room":
        return cls(
            id=record.get("id"),
            version=record.get("version"),
            room_number=record["room_number"],
            room_type=RoomType(record["room_type"]),
            charges_per_day=Decimal(str(record.get("charges_per_day") or 0)),
            occupancy_state=OccupancyState(record.get("occupancy_state") or OccupancyState.AVAILABLE.value),
            current_patient_ref=record.get("current_patient_ref"),
            occupied_since=record.get("occupied_since"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（JSON 友好）"""
        return {
            "id": self.id,
            "room_number": self.room_number,
            "room_type": self.room_type.value,
            "charges_per_day": str(self.charges_per_day),
            "occupancy_state": self.occupancy_state.value,
            "current_patient_ref": self.current_patient_ref,
            "occupied_since": self.occupied_since.isoformat() if self.occupied_since else None,
        }


# ============== 纯转换 ==============

def new_room(room_number: Any, room_type: Any, charges_per_day: Any, *,
             now: Optional[datetime] = None) -> Room:
    """登记新病房，初始为 Available"""
    charges = to_decimal(charges_per_day, "charges_per_day")
    if charges < 0:
        raise ValidationError("charges_per_day must not be negative", field="charges_per_day")
    timestamp = now or utcnow()
    return Room(
        room_number=_require_ref(room_number, "room_number"),
        room_type=parse_room_type(room_type),
        charges_per_day=charges,
        created_at=timestamp,
        updated_at=timestamp,
    )


def assign(room: Room, patient_ref: Any, *, now: Optional[datetime] = None) -> Room:
    """
    分配病房给患者

    Raises:
        ConflictError: 病房已被占用（不会静默覆盖当前占用者）
    """
    patient_ref = _require_ref(patient_ref, "patient_ref")
    machine = room.machine()
    if not machine.transition_to(OccupancyState.OCCUPIED.value, "assign"):
        raise ConflictError("room already occupied", table="rooms", record_id=room.id)

    timestamp = now or utcnow()
    return replace(
        room,
        occupancy_state=OccupancyState(machine.current_state),
        current_patient_ref=patient_ref,
        occupied_since=timestamp,
        updated_at=timestamp,
    )


def release(room: Room, *, now: Optional[datetime] = None) -> Room:
    """释放病房。已空闲的病房原样返回。"""
    if not room.is_occupied:
        return room
    machine = room.machine()
    machine.transition_to(OccupancyState.AVAILABLE.value, "release")

    return replace(
        room,
        occupancy_state=OccupancyState(machine.current_state),
        current_patient_ref=None,
        occupied_since=None,
        updated_at=now or utcnow(),
    )


def transfer(room: Room, from_patient: Any, to_patient: Any, *,
             now: Optional[datetime] = None) -> Room:
    """
    将已占用病房从当前患者移交给另一位患者

    Raises:
        ConflictError: 病房空闲，或当前占用者不是 from_patient
        ValidationError: 目标患者与当前占用者相同
    """
    from_patient = _require_ref(from_patient, "from_patient")
    to_patient = _require_ref(to_patient, "to_patient")
    if from_patient == to_patient:
        raise ValidationError("to_patient must differ from from_patient", field="to_patient")
    if not room.is_occupied:
        raise ConflictError("room is not occupied", table="rooms", record_id=room.id)

    machine = room.machine()
    context = {"current_patient_ref": room.current_patient_ref, "from_patient": from_patient}
    if not machine.transition_to(OccupancyState.OCCUPIED.value, "transfer", context):
        raise ConflictError(
            f"room is occupied by another patient, not {from_patient}",
            table="rooms", record_id=room.id,
        )

    timestamp = now or utcnow()
    return replace(
        room,
        current_patient_ref=to_patient,
        occupied_since=timestamp,
        updated_at=timestamp,
    )


def ensure_deletable(room: Room) -> None:
    """病房被占用时抛出 ConflictError"""
    if room.is_occupied:
        raise ConflictError("cannot delete an occupied room", table="rooms", record_id=room.id)


# ============== 病房占用服务 ==============

class RoomOccupancy:
    """
    病房占用服务 - 在记录存储之上执行占用转换

    assign / release / transfer / delete 都是单条病房记录上的
    读-检查-写：在该病房的锁内完成，并以 expected_version 写回。
    """

    TABLE = "rooms"

    def __init__(self, store: RecordStore, clock: Optional[Clock] = None,
                 locks: Optional[KeyedLock] = None,
                 event_publisher: Optional[Callable[[Event], None]] = None):
        self._store = store
        self._clock = clock or utcnow
        self._locks = locks or KeyedLock()
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    # ============== 登记与查询 ==============

    def register(self, room_number: Any, room_type: Any, charges_per_day: Any) -> Room:
        """登记病房；房间号唯一"""
        room = new_room(room_number, room_type, charges_per_day, now=self._clock())
        with self._locks.hold(f"{self.TABLE}.room_number", room.room_number):
            if self._store.find(self.TABLE, room_number=room.room_number):
                raise ConflictError(f"room number {room.room_number} already exists", table=self.TABLE)
            stored = Room.from_record(self._store.insert(self.TABLE, room.to_record()))
        logger.info(f"Room {stored.room_number} registered ({stored.room_type.value})")
        self._publish(EventType.ROOM_REGISTERED, stored, None)
        return stored

    def get(self, room_id: Any) -> Room:
        return Room.from_record(self._store.get(self.TABLE, room_id))

    def list_rooms(self) -> List[Room]:
        """所有病房，按房间号排序"""
        return self._by_number(self._store.find(self.TABLE))

    def list_available(self) -> List[Room]:
        """空闲病房，按房间号排序"""
        return self._by_number(
            self._store.find(self.TABLE, occupancy_state=OccupancyState.AVAILABLE.value)
        )

    def occupancy_summary(self) -> Dict[str, int]:
        """房态统计"""
        rooms = self.list_rooms()
        occupied = sum(1 for room in rooms if room.is_occupied)
        return {
            "total": len(rooms),
            "available": len(rooms) - occupied,
            "occupied": occupied,
        }

    def update_details(self, room_id: Any, room_type: Any = None,
                       charges_per_day: Any = None) -> Room:
        """修改病房类型、日费用；不涉及占用字段"""
        changes: Record = {}
        if room_type is not None:
            changes["room_type"] = parse_room_type(room_type).value
        if charges_per_day is not None:
            charges = to_decimal(charges_per_day, "charges_per_day")
            if charges < 0:
                raise ValidationError("charges_per_day must not be negative", field="charges_per_day")
            changes["charges_per_day"] = charges
        if not changes:
            return self.get(room_id)

        with self._locks.hold(self.TABLE, room_id):
            current = self.get(room_id)
            changes["updated_at"] = self._clock()
            record = self._store.update(self.TABLE, room_id, changes, expected_version=current.version)
        logger.info(f"Room {current.room_number} details updated: {sorted(changes)}")
        return Room.from_record(record)

    # ============== 占用转换 ==============

    def assign(self, room_id: Any, patient_ref: Any) -> Room:
        return self._transition(
            room_id, EventType.ROOM_ASSIGNED,
            lambda room: assign(room, patient_ref, now=self._clock()),
        )

    def release(self, room_id: Any) -> Room:
        return self._transition(
            room_id, EventType.ROOM_RELEASED,
            lambda room: release(room, now=self._clock()),
        )

    def transfer(self, room_id: Any, from_patient: Any, to_patient: Any) -> Room:
        return self._transition(
            room_id, EventType.ROOM_TRANSFERRED,
            lambda room: transfer(room, from_patient, to_patient, now=self._clock()),
        )

    def delete(self, room_id: Any) -> None:
        """删除病房；占用中抛出 ConflictError，记录保持不变"""
        with self._locks.hold(self.TABLE, room_id):
            current = self.get(room_id)
            ensure_deletable(current)
            self._store.delete(self.TABLE, room_id, expected_version=current.version)
        logger.info(f"Room {current.room_number} deleted")
        self._publish(EventType.ROOM_DELETED, current, current)

    def _transition(self, room_id: Any, event_type: EventType,
                    apply: Callable[[Room], Room]) -> Room:
        with self._locks.hold(self.TABLE, room_id):
            current = self.get(room_id)
            updated = apply(current)
            if updated is current:
                return current
            stored = Room.from_record(self._store.update(
                self.TABLE, room_id, updated.occupancy_patch(), expected_version=current.version
            ))

        logger.info(
            f"Room {stored.room_number} {event_type.value.split('.')[-1]}: "
            f"{current.current_patient_ref} -> {stored.current_patient_ref}"
        )
        self._publish(event_type, stored, current)
        return stored

    @staticmethod
    def _by_number(records: List[Record]) -> List[Room]:
        return sorted((Room.from_record(r) for r in records), key=lambda room: room.room_number)

    def _publish(self, event_type: EventType, room: Room, previous: Optional[Room]) -> None:
        self._publish_event(Event(
            event_type=event_type.value,
            timestamp=self._clock(),
            data=RoomOccupancyChangedData(
                room_id=room.id,
                room_number=room.room_number,
                old_state=previous.occupancy_state.value if previous else "",
                new_state=room.occupancy_state.value,
                previous_patient_ref=previous.current_patient_ref if previous else None,
                patient_ref=room.current_patient_ref,
            ).to_dict(),
            source="room_occupancy",
        ))


__all__ = [
    "RoomType",
    "OccupancyState",
    "OCCUPANCY_MACHINE",
    "Room",
    "parse_room_type",
    "new_room",
    "assign",
    "release",
    "transfer",
    "ensure_deletable",
    "RoomOccupancy",
]
