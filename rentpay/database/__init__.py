from rentpay.database.async_db import (
    dispose_async_engine,
    get_async_db,
    get_async_engine,
    get_session_factory,
)
from rentpay.database.base import Base, TimestampMixin

__all__ = [
    "Base",
    "TimestampMixin",
    "dispose_async_engine",
    "get_async_db",
    "get_async_engine",
    "get_session_factory",
]
