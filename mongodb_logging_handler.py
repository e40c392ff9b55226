"""
MongoDB Logging Handler for storing application logs in MongoDB.

Records land in the ``server_logs`` collection (see ``db.models.ServerLog``),
which expires entries after 30 days.
"""

import asyncio
import contextlib
import logging
from typing import Any

from pymongo.asynchronous.database import AsyncDatabase

from date_utils import get_current_utc_time


class MongoDBHandler(logging.Handler):
    """Logging handler that writes records to MongoDB without blocking callers."""

    def __init__(self, db: AsyncDatabase, collection_name: str = "server_logs"):
        super().__init__()
        self.collection = db[collection_name]
        self._pending: set[asyncio.Task] = set()

    def emit(self, record: logging.LogRecord) -> None:
        """Schedule the insert on the running loop; records logged off-loop are dropped."""
        # The driver logs through the root logger too.
        if record.name.startswith(("pymongo", "beanie")):
            return
        try:
            log_entry = self._format_log_entry(record)
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            task = loop.create_task(self._async_emit(log_entry))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        except Exception:
            self.handleError(record)

    async def _async_emit(self, log_entry: dict[str, Any]) -> None:
        # Logging a failure here would recurse back into this handler.
        with contextlib.suppress(Exception):
            await self.collection.insert_one(log_entry)

    def _format_log_entry(self, record: logging.LogRecord) -> dict[str, Any]:
        log_entry: dict[str, Any] = {
            "timestamp": get_current_utc_time(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "funcName": record.funcName,
        }
        if record.exc_info:
            log_entry["exc_info"] = self.format(record)
        return log_entry
