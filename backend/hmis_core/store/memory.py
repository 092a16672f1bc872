"""
hmis_core/store/memory.py

内存记录存储 - 测试替身与本地运行使用
"""
from copy import deepcopy
from typing import Any, Dict, List, Optional
import itertools
import logging
import threading

from hmis_core.errors import ConflictError, NotFoundError
from hmis_core.store.base import Record

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """
    线程安全的内存记录存储

    每张表一个 dict，自增整数主键。单个调用在内部锁内完成，
    满足 RecordStore 的"单调用原子"约定。
    """

    def __init__(self):
        self._tables: Dict[str, Dict[Any, Record]] = {}
        self._sequences: Dict[str, itertools.count] = {}
        self._lock = threading.RLock()

    def _table(self, table: str) -> Dict[Any, Record]:
        if table not in self._tables:
            self._tables[table] = {}
            self._sequences[table] = itertools.count(1)
        return self._tables[table]

    def get(self, table: str, record_id: Any) -> Record:
        with self._lock:
            rows = self._table(table)
            if record_id not in rows:
                raise NotFoundError(table, record_id)
            return deepcopy(rows[record_id])

    def insert(self, table: str, record: Record) -> Record:
        with self._lock:
            rows = self._table(table)
            row = deepcopy(record)
            if row.get("id") is None:
                row["id"] = next(self._sequences[table])
            elif row["id"] in rows:
                raise ConflictError(f"{table} {row['id']} already exists", table=table, record_id=row["id"])
            row["version"] = 1
            rows[row["id"]] = row
            logger.debug(f"Inserted {table} {row['id']}")
            return deepcopy(row)

    def update(self, table: str, record_id: Any, patch: Record,
               expected_version: Optional[int] = None) -> Record:
        with self._lock:
            rows = self._table(table)
            if record_id not in rows:
                raise NotFoundError(table, record_id)
            row = rows[record_id]
            self._check_version(table, record_id, row, expected_version)
            changes = {k: deepcopy(v) for k, v in patch.items() if k not in ("id", "version")}
            row.update(changes)
            row["version"] += 1
            return deepcopy(row)

    def delete(self, table: str, record_id: Any,
               expected_version: Optional[int] = None) -> None:
        with self._lock:
            rows = self._table(table)
            if record_id not in rows:
                raise NotFoundError(table, record_id)
            self._check_version(table, record_id, rows[record_id], expected_version)
            del rows[record_id]

    def find(self, table: str, **criteria: Any) -> List[Record]:
        with self._lock:
            rows = self._table(table).values()
            return [
                deepcopy(row) for row in rows
                if all(row.get(key) == value for key, value in criteria.items())
            ]

    @staticmethod
    def _check_version(table: str, record_id: Any, row: Record,
                       expected_version: Optional[int]) -> None:
        if expected_version is not None and row["version"] != expected_version:
            logger.warning(
                f"Version conflict on {table} {record_id}: "
                f"expected {expected_version}, stored {row['version']}"
            )
            raise ConflictError("concurrent modification", table=table, record_id=record_id)


__all__ = ["InMemoryRecordStore"]
