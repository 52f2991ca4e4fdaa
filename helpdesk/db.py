"""数据库连接与会话管理。"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings


logger = logging.getLogger(__name__)

settings = get_settings()


class Base(DeclarativeBase):
    """SQLAlchemy 基类。"""

    pass


def _connect_args(database_url: str, timeout_seconds: float) -> dict:
    # SQLite 需要 ``check_same_thread=False`` 以支持多线程；timeout 即锁等待上限
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout_seconds}
    if database_url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={int(timeout_seconds * 1000)}"}
    return {}


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite 默认不执行外键约束，级联删除依赖它。"""

    if engine.url.get_backend_name() != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(database_url: str, timeout_seconds: float | None = None, **kwargs) -> Engine:
    """按配置创建引擎，并为 SQLite 打开外键。"""

    if timeout_seconds is None:
        timeout_seconds = settings.statement_timeout_seconds
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    connect_args = kwargs.pop("connect_args", None) or _connect_args(
        database_url, timeout_seconds
    )
    engine = create_engine(database_url, connect_args=connect_args, **kwargs)
    enable_sqlite_foreign_keys(engine)
    return engine


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(session: Session | None = None) -> Iterator[Session]:
    """提供事务范围的 Session 上下文管理器。

    传入已有 Session 时只负责提交/回滚，不负责关闭（由创建者关闭）。
    """

    owned = session is None
    if owned:
        session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        if owned:
            session.close()


def get_db() -> Iterator[Session]:
    """FastAPI 依赖，用于获取数据库会话。"""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
