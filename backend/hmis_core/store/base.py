"""
hmis_core/store/base.py

记录存储协议 - 核心层唯一的持久化边界

每个调用本身是原子的，但跨调用不可组合；读-检查-写的串行化由调用方
（领域服务）通过 KeyedLock 与 expected_version 负责。
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

Record = Dict[str, Any]


@runtime_checkable
class RecordStore(Protocol):
    """
    记录存储协议

    约定：
    - 所有记录都有 id 与 version 字段；insert 时 version 置为 1
    - update/delete 传入 expected_version 时，仅当存储中的 version 相同才生效，
      否则抛出 ConflictError
    - 记录不存在时抛出 NotFoundError
    - 返回值均为副本，修改返回值不影响存储
    """

    def get(self, table: str, record_id: Any) -> Record:
        ...

    def insert(self, table: str, record: Record) -> Record:
        ...

    def update(self, table: str, record_id: Any, patch: Record,
               expected_version: Optional[int] = None) -> Record:
        ...

    def delete(self, table: str, record_id: Any,
               expected_version: Optional[int] = None) -> None:
        ...

    def find(self, table: str, **criteria: Any) -> List[Record]:
        ...


__all__ = ["Record", "RecordStore"]
