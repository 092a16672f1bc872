"""
领域事件定义 (Domain Events)
病房占用与账单变更后发布的事件
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    # 病房相关
    ROOM_REGISTERED = "room.registered"
    ROOM_ASSIGNED = "room.assigned"
    ROOM_RELEASED = "room.released"
    ROOM_TRANSFERRED = "room.transferred"
    ROOM_DELETED = "room.deleted"

    # 账单相关
    BILL_CREATED = "bill.created"
    BILL_REVISED = "bill.revised"
    BILL_DELETED = "bill.deleted"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class RoomOccupancyChangedData(BaseEventData):
    """病房占用变更事件数据"""
    room_id: Any = None
    room_number: str = ""
    old_state: str = ""
    new_state: str = ""
    previous_patient_ref: Optional[str] = None
    patient_ref: Optional[str] = None


@dataclass
class BillChangedData(BaseEventData):
    """账单变更事件数据"""
    bill_id: Any = None
    patient_ref: str = ""
    total: str = "0"
    payment_status: str = ""
    recomputed: bool = False


__all__ = [
    "EventType",
    "BaseEventData",
    "RoomOccupancyChangedData",
    "BillChangedData",
]
