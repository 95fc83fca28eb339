"""
Global database manager.

Holds the process-wide database client used by the services. The app
lifespan initializes it; tests inject a stand-in through set_db().
"""

import logging
from typing import Any, Optional

from speakabout.core.postgres_database import PostgresAsyncClient

logger = logging.getLogger(__name__)

_db: Optional[Any] = None


async def init_database(environment: Optional[str] = None) -> None:
    """Create the client and open its pool, unless one is already set."""
    global _db
    if _db is not None:
        return
    client = PostgresAsyncClient(environment)
    await client.init_pool()
    _db = client


async def close_database() -> None:
    """Close and forget the current client."""
    global _db
    if _db is None:
        return
    close = getattr(_db, "close", None)
    if close is not None:
        await close()
    _db = None
    logger.info("Database connection closed")


def get_db() -> Any:
    """
    Get the current database client.

    Raises:
        RuntimeError: If the database has not been initialized
    """
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _db


def set_db(client: Optional[Any]) -> None:
    """Replace the current client (None clears it)."""
    global _db
    _db = client
