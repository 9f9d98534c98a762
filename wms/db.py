from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from wms.config import settings


def enable_sqlite_savepoints(engine: Engine) -> None:
    """Let pysqlite honour SAVEPOINT by taking over BEGIN from the driver."""

    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_connection, _connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _on_begin(conn) -> None:
        conn.exec_driver_sql('BEGIN')


def build_engine(url: str, **kwargs) -> Engine:
    engine = create_engine(url, echo=settings.database_echo, pool_pre_ping=True, **kwargs)
    if engine.dialect.name == 'sqlite':
        enable_sqlite_savepoints(engine)
    return engine


engine = build_engine(settings.database_url_normalized)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    from wms.models import Base

    Base.metadata.create_all(bind=bind or engine)
