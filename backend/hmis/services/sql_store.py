"""
SQLAlchemy 记录存储 - hmis_core.store.RecordStore 的数据库实现

每个调用在一个事务内完成。update/delete 携带 expected_version 时使用
单条 UPDATE/DELETE ... WHERE id = :id AND version = :v 语句，
跨进程的并发写入同样会被检测到。
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import delete as sql_delete, inspect, update as sql_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hmis.models.ontology import Bill, Room
from hmis_core.errors import ConflictError, NotFoundError
from hmis_core.store.base import Record
from hmis_core.store.locks import KeyedLock

logger = logging.getLogger(__name__)


class SqlRecordStore:
    """基于 Session 的记录存储"""

    MODELS = {
        "rooms": Room,
        "bills": Bill,
    }

    def __init__(self, db: Session):
        self.db = db

    def _model(self, table: str):
        model = self.MODELS.get(table)
        if model is None:
            raise ValueError(f"Unknown table: {table}")
        return model

    @staticmethod
    def _columns(model) -> List[str]:
        return [attr.key for attr in inspect(model).mapper.column_attrs]

    def _to_record(self, obj) -> Record:
        return {key: getattr(obj, key) for key in self._columns(type(obj))}

    def _load(self, model, record_id: Any):
        return self.db.query(model).populate_existing().filter(model.id == record_id).first()

    def get(self, table: str, record_id: Any) -> Record:
        obj = self._load(self._model(table), record_id)
        if obj is None:
            raise NotFoundError(table, record_id)
        return self._to_record(obj)

    def insert(self, table: str, record: Record) -> Record:
        model = self._model(table)
        columns = self._columns(model)
        values = {k: v for k, v in record.items() if k in columns and k != "version"}
        obj = model(**values, version=1)
        self.db.add(obj)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Insert into {table} rejected: {e.orig}")
            raise ConflictError(f"{table} record violates a uniqueness constraint", table=table)
        self.db.refresh(obj)
        return self._to_record(obj)

    def update(self, table: str, record_id: Any, patch: Record,
               expected_version: Optional[int] = None) -> Record:
        model = self._model(table)
        columns = self._columns(model)
        values: Dict[str, Any] = {
            k: v for k, v in patch.items() if k in columns and k not in ("id", "version")
        }
        values["version"] = model.version + 1

        stmt = sql_update(model).where(model.id == record_id)
        if expected_version is not None:
            stmt = stmt.where(model.version == expected_version)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        try:
            result = self.db.execute(stmt)
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Update of {table} {record_id} rejected: {e.orig}")
            raise ConflictError(f"{table} record violates a uniqueness constraint",
                                table=table, record_id=record_id)
        if result.rowcount == 0:
            self.db.rollback()
            self._raise_missing_or_stale(table, model, record_id, expected_version)
        self.db.commit()
        return self.get(table, record_id)

    def delete(self, table: str, record_id: Any,
               expected_version: Optional[int] = None) -> None:
        model = self._model(table)
        stmt = sql_delete(model).where(model.id == record_id)
        if expected_version is not None:
            stmt = stmt.where(model.version == expected_version)

        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount == 0:
            self.db.rollback()
            self._raise_missing_or_stale(table, model, record_id, expected_version)
        self.db.commit()
        self.db.expire_all()

    def find(self, table: str, **criteria: Any) -> List[Record]:
        model = self._model(table)
        query = self.db.query(model).populate_existing()
        if criteria:
            query = query.filter_by(**criteria)
        return [self._to_record(obj) for obj in query.order_by(model.id).all()]

    def _raise_missing_or_stale(self, table: str, model, record_id: Any,
                                expected_version: Optional[int]) -> None:
        exists = self.db.query(model.id).filter(model.id == record_id).first()
        if exists is None:
            raise NotFoundError(table, record_id)
        logger.warning(f"Version conflict on {table} {record_id}: expected {expected_version}")
        raise ConflictError("concurrent modification", table=table, record_id=record_id)


# 进程内共享的记录锁：同一 (表, id) 的读-检查-写在所有请求间串行
record_locks = KeyedLock()


__all__ = ["SqlRecordStore", "record_locks"]
