"""
PostgreSQL Async Database Client

This module provides an async PostgreSQL client with connection pooling,
$n-parameterized query methods, transactions, and event loop aware pool
handling for use across different execution contexts (app, CLI, tests).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg
from asyncpg import Pool

from speakabout.core.environment import get_database_connection_string

logger = logging.getLogger(__name__)


class PostgresAsyncClient:
    """Async PostgreSQL client with connection pooling."""

    def __init__(
        self,
        environment: Optional[str] = None,
        connection_string: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 10,
    ):
        """
        Initialize PostgreSQL async client with environment support.

        Args:
            environment (str, optional): Environment name (test, staging, prod).
                                        If None, auto-detect from environment variables.
            connection_string (str, optional): Explicit DSN, overrides the environment lookup.
        """
        self.environment = environment
        self.connection_string = connection_string or get_database_connection_string(environment)
        self.min_size = min_size
        self.max_size = max_size

        self._pool: Optional[Pool] = None
        self._init_lock: Optional[asyncio.Lock] = None
        self._pool_loop_id: Optional[int] = None

    def _get_init_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy initialization)"""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    def _is_pool_valid(self) -> bool:
        """Check if the pool exists and is bound to the current event loop"""
        if self._pool is None:
            return False
        try:
            current_loop_id = id(asyncio.get_running_loop())
        except RuntimeError:
            return False
        if self._pool_loop_id is not None and self._pool_loop_id != current_loop_id:
            return False
        return not self._pool.is_closing()

    async def init_pool(self) -> None:
        """Initialize connection pool (async-safe, event-loop aware)"""
        if self._is_pool_valid():
            return

        async with self._get_init_lock():
            if self._is_pool_valid():
                return

            # Pool from another loop cannot be reused
            if self._pool is not None:
                try:
                    await self._pool.close()
                except (OSError, asyncpg.exceptions.InterfaceError) as e:
                    logger.debug("Ignoring error while closing stale pool: %s", e)
                self._pool = None
                self._pool_loop_id = None

            self._pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,
                statement_cache_size=0,  # pooled hosted Postgres rejects cached statements
            )
            self._pool_loop_id = id(asyncio.get_running_loop())
            logger.info("Database pool initialized (max_size=%d)", self.max_size)

    async def close(self) -> None:
        """Close the database connection pool"""
        if self._pool is None:
            return
        async with self._get_init_lock():
            if self._pool:
                await self._pool.close()
                self._pool = None
                self._pool_loop_id = None

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Get a database connection from the pool (auto-initializes if needed)"""
        await self.init_pool()

        if not self._pool or not self._is_pool_valid():
            raise RuntimeError("Failed to initialize database connection pool")

        async with self._pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Run statements in a single transaction.

        Commits when the block exits normally, rolls back on any exception.
        """
        async with self.get_connection() as conn:
            async with conn.transaction():
                yield conn

    # ================== Data Conversion Helpers ==================

    def _convert_decimals_to_floats(self, obj: Any) -> Any:
        """Recursively convert all Decimal instances to float in nested data structures."""
        if isinstance(obj, Decimal):
            return float(obj)
        elif isinstance(obj, dict):
            return {key: self._convert_decimals_to_floats(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._convert_decimals_to_floats(item) for item in obj]
        elif isinstance(obj, tuple):
            return tuple(self._convert_decimals_to_floats(item) for item in obj)
        else:
            return obj

    # ================== Simple Query Methods ==================

    async def read(self, query: str, *args: Any) -> List[Dict[str, Any]]:
        """
        Execute a SELECT query and return results as list of dictionaries

        Args:
            query (str): SQL SELECT query with $1, $2, etc. placeholders
            *args: Parameters for the query placeholders

        Returns:
            List[Dict[str, Any]]: Query results with Decimal values converted to float
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, *args)
            return self._convert_decimals_to_floats([dict(row) for row in rows])

    async def read_one(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        """
        Execute a SELECT query and return first result as dictionary

        Returns:
            First row as a dictionary, or None if no result
        """
        async with self.get_connection() as conn:
            row = await conn.fetchrow(query, *args)
            if row:
                return self._convert_decimals_to_floats(dict(row))
            return None

    async def insert_one(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a single record into a table

        Args:
            table (str): Table name (trusted, never user input)
            data (Dict[str, Any]): Column names mapped to values

        Returns:
            Dict[str, Any]: The full inserted record
        """
        columns = list(data.keys())
        placeholders = [f"${i}" for i in range(1, len(columns) + 1)]

        query = f"""
            INSERT INTO {table} ({', '.join(columns)})
            VALUES ({', '.join(placeholders)})
            RETURNING *
        """

        async with self.get_connection() as conn:
            result = await conn.fetchrow(query, *data.values())
            return self._convert_decimals_to_floats(dict(result))

    async def execute(self, query: str, *args: Any) -> str:
        """
        Execute an INSERT, UPDATE, DELETE or DDL statement

        Returns:
            str: Result status from the database (e.g., "INSERT 0 1", "UPDATE 1", "DELETE 1")
        """
        async with self.get_connection() as conn:
            return await conn.execute(query, *args)

    async def execute_returning(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        """
        Execute an INSERT, UPDATE, or DELETE query with RETURNING clause

        Returns:
            The returned row with Decimal values converted to float, or None
        """
        async with self.get_connection() as conn:
            result = await conn.fetchrow(query, *args)
            if result:
                return self._convert_decimals_to_floats(dict(result))
            return None
