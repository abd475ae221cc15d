from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from app.db.base import Base
from app.db.session import engine as default_engine
import app.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "daily_timetables": {
        "id",
        "day",
        "role",
        "department",
        "faculty_id",
        "section",
        "semester",
        "created_at",
        "updated_at",
    },
    "timetable_slots": {
        "id",
        "timetable_id",
        "day",
        "position",
        "time",
        "normalized_time",
        "course_code",
        "course_name",
        "room_no",
    },
}


def inspect_schema(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    """Return the required tables that are absent and the absent columns of the present ones."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    for table_name, columns in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            missing_tables.append(table_name)
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        absent = sorted(columns - existing)
        if absent:
            missing_columns[table_name] = absent
    return missing_tables, missing_columns


def missing_schema_columns(engine: Engine) -> dict[str, list[str]]:
    with engine.connect() as connection:
        missing_tables, missing = inspect_schema(connection)
    for table_name in missing_tables:
        missing[table_name] = sorted(REQUIRED_COLUMNS[table_name])
    return missing


def ensure_runtime_schema(engine: Engine | None = None) -> None:
    """Create missing timetable tables and report columns that need a migration.

    An unreachable database is logged, not raised: the API still starts and
    ``/health/ready`` reports the degraded state.
    """
    engine = engine or default_engine
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        missing = missing_schema_columns(engine)
    except OperationalError:
        logger.warning("Database unavailable during schema bootstrap; continuing in degraded mode", exc_info=True)
        return
    for table_name, columns in missing.items():
        logger.error(
            "Table %s is missing column(s) %s; run `alembic upgrade head`",
            table_name,
            ", ".join(columns),
        )
