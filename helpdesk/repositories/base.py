"""通用仓储契约。

每个仓储绑定一个 ``Session``，只负责 flush，事务边界由调用方
（``session_scope`` / 应用服务）决定。写操作前一律先做实体校验。

查询未命中返回 ``None``；``update`` 返回 ``None`` 表示没有匹配行；
``delete`` 幂等。所有 SQLAlchemy 异常都会被翻译为 ``StorageError``。
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generic, Iterator, Optional, Sequence, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import StorageError, UnsupportedOperationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransientStorageError(StorageError):
    """可重试的存储故障（锁超时、连接中断等）。"""

    pass


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """把 SQLAlchemy 异常翻译为 StorageError，区分瞬时故障。"""

    try:
        yield
    except OperationalError as exc:
        logger.warning("Transient storage failure during %s: %s", action, exc)
        raise TransientStorageError(f"Storage unavailable during {action}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            logger.warning("Connection lost during %s: %s", action, exc)
            raise TransientStorageError(f"Connection lost during {action}") from exc
        logger.error("Storage failure during %s: %s", action, exc)
        raise StorageError(f"Storage failure during {action}") from exc
    except SQLAlchemyError as exc:
        logger.error("Storage failure during %s: %s", action, exc)
        raise StorageError(f"Storage failure during {action}") from exc


class Repository(Generic[T]):
    """单主键实体的 CRUD 仓储。子类设置 ``model`` 并实现 ``validate``。"""

    model: type

    def __init__(self, db: Session) -> None:
        self.db = db

    @property
    def name(self) -> str:
        return self.model.__name__

    def validate(self, entity: T, creating: bool) -> None:
        """写操作前的校验钩子。"""

    # === 查询辅助 ===

    def _scalar(self, statement) -> Any:
        with storage_errors(f"{self.name} query"):
            return self.db.scalar(statement)

    def _scalars(self, statement) -> list:
        with storage_errors(f"{self.name} query"):
            return list(self.db.scalars(statement).unique().all())

    def _execute(self, statement):
        with storage_errors(f"{self.name} statement"):
            return self.db.execute(statement)

    def _flush(self, action: str) -> None:
        with storage_errors(f"{self.name} {action}"):
            self.db.flush()

    def _exists(self, entity_id: Optional[int]) -> bool:
        if entity_id is None:
            return False
        return bool(
            self._scalar(select(func.count()).select_from(self.model).where(self.model.id == entity_id))
        )

    # === CRUD ===

    def create(self, entity: T) -> T:
        self.validate(entity, creating=True)
        self.db.add(entity)
        self._flush("create")
        return entity

    def get_by_id(self, entity_id: int) -> Optional[T]:
        with storage_errors(f"{self.name} lookup"):
            return self.db.get(self.model, entity_id)

    def get_all(self) -> list[T]:
        return self._scalars(select(self.model).order_by(self.model.id))

    def update(self, entity: T) -> Optional[T]:
        self.validate(entity, creating=False)
        if not self._exists(getattr(entity, "id", None)):
            return None
        with storage_errors(f"{self.name} update"):
            merged = self.db.merge(entity)
            self.db.flush()
        return merged

    def delete(self, entity_id: int) -> None:
        self._execute(delete(self.model).where(self.model.id == entity_id))

    def _by_ids(self, ids: Sequence[int]) -> list[T]:
        if not ids:
            return []
        return self._scalars(select(self.model).where(self.model.id.in_(ids)))


class CompositeKeyRepository(Repository[T]):
    """复合主键实体的仓储。

    单 id 的 ``get_by_id`` / ``delete`` 不成立，调用即抛出
    ``UnsupportedOperationError``；请使用 ``get_by_composite_key`` 与
    ``delete_by_composite_key``。这是有意保留的契约分裂，不要合并为单 id 接口。
    """

    key_columns: tuple[str, str]

    def _key_clause(self, first: int, second: int):
        a, b = self.key_columns
        return (getattr(self.model, a) == first, getattr(self.model, b) == second)

    def get_by_id(self, entity_id: int) -> Optional[T]:
        raise UnsupportedOperationError(
            f"{self.name} uses a composite key; use get_by_composite_key instead."
        )

    def delete(self, entity_id: int) -> None:
        raise UnsupportedOperationError(
            f"{self.name} uses a composite key; use delete_by_composite_key instead."
        )

    def get_all(self) -> list[T]:
        a, b = self.key_columns
        return self._scalars(
            select(self.model).order_by(getattr(self.model, a), getattr(self.model, b))
        )

    def get_by_composite_key(self, first: int, second: int) -> Optional[T]:
        with storage_errors(f"{self.name} lookup"):
            return self.db.get(self.model, (first, second))

    def delete_by_composite_key(self, first: int, second: int) -> None:
        self._execute(delete(self.model).where(*self._key_clause(first, second)))

    def update(self, entity: T) -> Optional[T]:
        self.validate(entity, creating=False)
        a, b = self.key_columns
        exists = self._scalar(
            select(func.count())
            .select_from(self.model)
            .where(*self._key_clause(getattr(entity, a), getattr(entity, b)))
        )
        if not exists:
            return None
        with storage_errors(f"{self.name} update"):
            merged = self.db.merge(entity)
            self.db.flush()
        return merged
