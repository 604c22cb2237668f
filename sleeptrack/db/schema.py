"""Tables used by the remote storage backend"""
import logging

import psycopg

from sleeptrack.db.connection import Database
from sleeptrack.exceptions import wrap_storage_exception

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS sleep_entries (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        bedtime TIMESTAMPTZ NOT NULL,
        wake_time TIMESTAMPTZ NOT NULL,
        duration NUMERIC(4, 1) NOT NULL CHECK (duration >= 0),
        note VARCHAR(200),
        quality SMALLINT CHECK (quality BETWEEN 1 AND 5),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_sleep_entries_user_bedtime
        ON sleep_entries (user_id, bedtime DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS user_settings (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE,
        target_hours NUMERIC(3, 1) NOT NULL DEFAULT 8.0,
        reminder_enabled BOOLEAN NOT NULL DEFAULT FALSE,
        reminder_time VARCHAR(5) NOT NULL DEFAULT '22:00',
        onboarding_completed BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
)


async def create_schema(database: Database) -> None:
    """Create the sleep tables if they do not exist"""
    try:
        async with database.connection() as conn:
            async with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    await cur.execute(statement)
            await conn.commit()
    except psycopg.Error as e:
        raise wrap_storage_exception(e, operation="create_schema")
    logger.info("Sleep tables ready")
