"""
hmis_core/store/locks.py

按记录标识加锁 - 串行化同一条记录上的读-检查-写
"""
from contextlib import contextmanager
from typing import Any, Dict, Hashable, Iterator, Tuple
import logging
import threading

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    每个 (table, record_id) 一把互斥锁

    锁按需创建并带引用计数，最后一个持有者释放后从表中移除，
    因此长期运行不会随记录数量无限增长。

    Example:
        >>> locks = KeyedLock()
        >>> with locks.hold("rooms", 7):
        ...     room = store.get("rooms", 7)
        ...     store.update("rooms", 7, {...}, expected_version=room["version"])
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, Hashable], threading.Lock] = {}
        self._refs: Dict[Tuple[str, Hashable], int] = {}

    @contextmanager
    def hold(self, table: str, record_id: Any) -> Iterator[None]:
        key = (table, record_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._refs[key] = self._refs.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]

    def active_keys(self) -> int:
        """当前被持有或等待中的记录数（用于测试）"""
        with self._guard:
            return len(self._locks)


__all__ = ["KeyedLock"]
