"""Declarative base, shared column mixins and engine construction."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, event, func, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from fieldsmart.core.exceptions import ValidationError


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class TenantMixin:
    """Rows owned by one tenant. Services filter every query on ``tenant_id``."""

    @declared_attr
    def tenant_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
        )


def require_non_null(model: type[Base], changes: dict, message: str) -> None:
    """Reject explicit ``None`` for columns of ``model`` declared NOT NULL.

    Raises a 422 keyed by the camel-cased field name, the same keys the
    estimate validator uses.
    """
    columns = inspect(model).columns
    details = {
        _camel(key): "This field cannot be empty"
        for key, value in changes.items()
        if value is None and key in columns and not columns[key].nullable
    }
    if details:
        raise ValidationError(message, details=details)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def is_sqlite_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
    # SQLite only honours ON DELETE CASCADE / SET NULL with this pragma, per connection
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def build_engine(database_url: str, **engine_kwargs) -> AsyncEngine:
    sqlite = is_sqlite_url(database_url)
    if sqlite:
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})

    engine = create_async_engine(database_url, **engine_kwargs)

    if sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Services reload what they return with populate_existing after each commit
    return async_sessionmaker(engine, expire_on_commit=False)
