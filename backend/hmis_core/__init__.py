"""
hmis_core - 医院管理核心层

领域无关的存储抽象与两个持有真实不变量的领域组件：
- domain.billing: 账单金额推导（BillingLedger）
- domain.room: 病房占用状态机（RoomOccupancy）
- store: 记录存储协议、内存实现、按记录加锁
- engine: 状态机、事件总线

使用方式:
    >>> from hmis_core.store import InMemoryRecordStore
    >>> from hmis_core.domain.billing import BillingLedger, compute_totals
    >>> from hmis_core.domain.room import RoomOccupancy
"""
from hmis_core.errors import HMISError, ValidationError, ConflictError, NotFoundError

__version__ = "0.1.0"

__all__ = [
    "HMISError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
]
