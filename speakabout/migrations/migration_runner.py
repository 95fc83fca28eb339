"""
Migration Runner - Applies pending schema migrations in version order
"""

import logging
from typing import Any, List, Optional, Sequence, Set

from speakabout.migrations.migration_versions import MIGRATIONS, Migration

logger = logging.getLogger(__name__)

VERSION_TABLE = "schema_migrations"


class MigrationError(Exception):
    """A migration failed; its transaction was rolled back."""

    def __init__(self, migration: Migration, cause: Exception):
        super().__init__(f"Migration {migration.label} failed: {cause}")
        self.migration = migration
        self.cause = cause


class MigrationRunner:
    """
    Applies migrations against a database client exposing execute(), read()
    and a transaction() context manager yielding a connection.
    """

    def __init__(self, db: Any, migrations: Sequence[Migration] = MIGRATIONS):
        self.db = db
        self.migrations = list(migrations)

    async def ensure_version_table(self) -> None:
        await self.db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {VERSION_TABLE} (
                version VARCHAR(20) PRIMARY KEY,
                name VARCHAR(255) NOT NULL,
                applied_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    async def applied_versions(self) -> Set[str]:
        rows = await self.db.read(f"SELECT version FROM {VERSION_TABLE} ORDER BY version")
        return {row["version"] for row in rows}

    async def pending(self) -> List[Migration]:
        """Registered migrations not yet recorded as applied, in order."""
        await self.ensure_version_table()
        applied = await self.applied_versions()
        return [m for m in self.migrations if m.version not in applied]

    async def apply(self, target: Optional[str] = None) -> List[Migration]:
        """
        Apply pending migrations up to and including target (all when None).

        Returns:
            The migrations applied by this call

        Raises:
            ValueError: If target names no registered migration
            MigrationError: On the first failing migration; later ones are not run
        """
        if target is not None and target not in {m.version for m in self.migrations}:
            raise ValueError(f"Unknown migration version: {target}")

        applied: List[Migration] = []
        for migration in await self.pending():
            if target is not None and migration.version > target:
                break
            await self._apply_one(migration)
            applied.append(migration)

        if not applied:
            logger.info("Schema is up to date")
        return applied

    async def _apply_one(self, migration: Migration) -> None:
        logger.info("Applying migration %s", migration.label)
        try:
            async with self.db.transaction() as conn:
                for statement in migration.statements:
                    await conn.execute(statement)
                await conn.execute(
                    f"INSERT INTO {VERSION_TABLE} (version, name) VALUES ($1, $2)",
                    migration.version,
                    migration.name,
                )
        except Exception as e:
            logger.error("Migration %s failed: %s", migration.label, e)
            raise MigrationError(migration, e) from e
        logger.info("Applied migration %s", migration.label)
