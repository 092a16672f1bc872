"""
hmis_core.store - 记录存储抽象
"""
from hmis_core.store.base import Record, RecordStore
from hmis_core.store.locks import KeyedLock
from hmis_core.store.memory import InMemoryRecordStore

__all__ = ["Record", "RecordStore", "KeyedLock", "InMemoryRecordStore"]
