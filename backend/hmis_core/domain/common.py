"""
领域模块公用工具：时钟与 Decimal 转换
"""
from datetime import datetime, UTC
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from hmis_core.errors import ValidationError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """不带时区的 UTC 时间，与数据库 DateTime 列一致"""
    return datetime.now(UTC).replace(tzinfo=None)


def to_decimal(value: Any, field: str, default: Any = None) -> Decimal:
    """
    将数值类输入转换为 Decimal

    float 先经 str() 转换，0.1 得到 Decimal("0.1") 而不是二进制展开值；
    None 在给出 default 时取 default，否则报错
    """
    if value is None:
        if default is None:
            raise ValidationError(f"{field} is required", field=field)
        value = default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    return result


__all__ = ["Clock", "utcnow", "to_decimal"]
