"""Database module for hpbot."""

from hpbot.data.database import close_async_db, init_async_db, set_db_path
from hpbot.data.repositories import OrderEventRepository

__all__ = [
    "close_async_db",
    "init_async_db",
    "set_db_path",
    "OrderEventRepository",
]
