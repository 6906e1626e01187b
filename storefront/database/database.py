import json
import asyncpg
import logging
from pathlib import Path
from typing import Optional
from ..config import Config

# SQLSTATEs a server or pooler uses when it refuses a transaction block
_UNSUPPORTED_SQLSTATES = {"0A000", "08P01"}
_UNSUPPORTED_MARKERS = (
    "transaction blocks not allowed",
    "pooling mode",
    "transactions are not supported",
)


def is_transaction_unsupported(error: BaseException) -> bool:
    """Tell a capability failure apart from a data or connection error"""
    if not isinstance(error, asyncpg.PostgresError):
        return False
    if getattr(error, "sqlstate", None) not in _UNSUPPORTED_SQLSTATES:
        return False
    message = str(error).lower()
    return any(marker in message for marker in _UNSUPPORTED_MARKERS)


class Database:
    """Owns the asyncpg pool and the schema migrations"""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or Config.DATABASE_URL
        self.pool: Optional[asyncpg.Pool] = None
        self.supports_transactions: Optional[bool] = None
        self.logger = logging.getLogger(__name__)

    async def connect(self):
        """Open the pool and apply pending migrations"""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=Config.DB_POOL_MIN_SIZE,
                max_size=Config.DB_POOL_MAX_SIZE,
                statement_cache_size=Config.DB_STATEMENT_CACHE_SIZE,
                init=self._init_connection
            )

            await self._run_migrations()

            self.logger.info("Database connection established")
        except Exception as e:
            self.logger.error(f"Database connection failed: {e}")
            raise

    async def close(self):
        """Close the pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("Database connection closed")

    @staticmethod
    async def _init_connection(conn):
        """Decode JSONB document columns into Python objects"""
        await conn.set_type_codec(
            'jsonb',
            encoder=json.dumps,
            decoder=json.loads,
            schema='pg_catalog'
        )

    async def probe_transactions(self) -> bool:
        """Check once whether this deployment accepts transaction blocks"""
        async with self.pool.acquire() as conn:
            try:
                async with conn.transaction():
                    await conn.fetchval("SELECT 1")
            except asyncpg.PostgresError as e:
                if not is_transaction_unsupported(e):
                    raise
                self.supports_transactions = False
                self.logger.warning(f"Transactions not supported by the database: {e}")
                return False

        self.supports_transactions = True
        self.logger.info("Database supports transactions")
        return True

    async def _run_migrations(self):
        """Apply migration files that have not run yet"""
        try:
            migrations_path = Path(__file__).parent / "migrations"

            async with self.pool.acquire() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS migrations (
                        id SERIAL PRIMARY KEY,
                        name VARCHAR(255) NOT NULL,
                        applied_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                for migration_file in sorted(migrations_path.glob("*.sql")):
                    migration_name = migration_file.name

                    is_applied = await conn.fetchval(
                        "SELECT COUNT(*) FROM migrations WHERE name = $1",
                        migration_name
                    )

                    if not is_applied:
                        await conn.execute(migration_file.read_text())

                        await conn.execute(
                            "INSERT INTO migrations (name) VALUES ($1)",
                            migration_name
                        )

                        self.logger.info(f"Migration {migration_name} applied")

        except Exception as e:
            self.logger.error(f"Migration failed: {e}")
            raise
