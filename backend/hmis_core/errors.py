"""
核心层错误类型
每个错误都带上字段、表名、记录 id 等上下文，调用方据此组织提示信息
"""
from typing import Any, Dict, Optional


class HMISError(Exception):
    """核心层错误基类"""

    def __init__(self, message: str, **detail: Any):
        super().__init__(message)
        self.message = message
        self.detail: Dict[str, Any] = {k: v for k, v in detail.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, **self.detail}


class ValidationError(HMISError, ValueError):
    """输入格式错误或超出范围，修正输入即可重试"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.field = field


class ConflictError(HMISError):
    """状态转换违反不变量，或基于过期版本的写入"""

    def __init__(self, message: str, table: Optional[str] = None, record_id: Any = None):
        super().__init__(message, table=table, record_id=record_id)
        self.table = table
        self.record_id = record_id


class NotFoundError(HMISError, LookupError):
    """目标记录不存在"""

    def __init__(self, table: str, record_id: Any, message: Optional[str] = None):
        super().__init__(message or f"{table} {record_id} not found", table=table, record_id=record_id)
        self.table = table
        self.record_id = record_id


__all__ = ["HMISError", "ValidationError", "ConflictError", "NotFoundError"]
