# taskstore/database.py
"""SQLite engine, session factory, and additive schema migration using SQLModel."""

import logging
from enum import Enum

from fastapi import Depends
from sqlalchemy import Column, Table, inspect, text
from sqlalchemy.dialects.sqlite import dialect as sqlite_dialect
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from taskstore.config import DATABASE_URL, DB_PATH

logger = logging.getLogger("taskstore.migrate")

engine = create_engine(DATABASE_URL, echo=False, connect_args={"check_same_thread": False})


def _compile_column_type(column: Column) -> str:
    """Compile a SQLAlchemy column type to a SQLite-compatible DDL string."""
    return column.type.compile(dialect=sqlite_dialect())


def _get_sqlite_default(column: Column) -> str:
    """Derive a DEFAULT clause for NOT NULL columns added via ALTER TABLE.

    SQLite requires a default when adding a NOT NULL column to a table that
    already holds rows. Nullable columns get no default, which is what keeps
    old documents without ``status`` readable as legacy records.
    """
    if column.nullable:
        return ""

    if column.default is not None and column.default.is_scalar:
        value = column.default.arg
        if isinstance(value, Enum):
            value = value.name
        if isinstance(value, bool):
            return f" DEFAULT {int(value)}"
        if isinstance(value, (int, float)):
            return f" DEFAULT {value}"
        escaped = str(value).replace("'", "''")
        return f" DEFAULT '{escaped}'"

    type_str = _compile_column_type(column).upper()
    if "INT" in type_str or "BOOL" in type_str:
        return " DEFAULT 0"
    if "FLOAT" in type_str or "REAL" in type_str or "NUMERIC" in type_str:
        return " DEFAULT 0.0"
    if "DATE" in type_str or "TIME" in type_str:
        return " DEFAULT '1970-01-01 00:00:00'"
    return " DEFAULT ''"


def _diff_table(db_engine: Engine, table: Table) -> tuple[set, set, set]:
    """Return (added, removed, type_changed) column names for a live table."""
    inspector = inspect(db_engine)
    db_columns = {col["name"]: col for col in inspector.get_columns(table.name)}
    model_columns = {col.name: col for col in table.columns}

    added = set(model_columns) - set(db_columns)
    removed = set(db_columns) - set(model_columns)
    type_changed = set()
    for col_name in set(db_columns) & set(model_columns):
        db_type = str(db_columns[col_name]["type"]).upper()
        model_type = _compile_column_type(model_columns[col_name]).upper()
        if db_type != model_type:
            logger.debug(
                "Type mismatch on '%s.%s': db=%s model=%s",
                table.name, col_name, db_type, model_type,
            )
            type_changed.add(col_name)
    return added, removed, type_changed


def auto_migrate(db_engine: Engine = engine, allow_destructive: bool = False) -> None:
    """Bring existing tables in line with the SQLModel metadata.

    New columns are added in place so stored documents survive. Removed or
    retyped columns would require recreating the table; that only happens
    with ``allow_destructive=True``, otherwise the drift is logged and left.
    """
    existing_tables = set(inspect(db_engine).get_table_names())

    for table_name, table in SQLModel.metadata.tables.items():
        if table_name not in existing_tables:
            continue

        added, removed, type_changed = _diff_table(db_engine, table)
        if not added and not removed and not type_changed:
            continue

        if added:
            logger.info("Adding columns to '%s': %s", table_name, sorted(added))
            with db_engine.begin() as conn:
                for col_name in sorted(added):
                    col = table.columns[col_name]
                    nullable = "" if col.nullable else " NOT NULL"
                    stmt = (
                        f'ALTER TABLE "{table_name}" '
                        f'ADD COLUMN "{col_name}" {_compile_column_type(col)}'
                        f"{nullable}{_get_sqlite_default(col)}"
                    )
                    logger.info("  %s", stmt)
                    conn.execute(text(stmt))

        if not removed and not type_changed:
            continue

        if not allow_destructive:
            logger.warning(
                "Schema drift on '%s' left in place (removed=%s, type_changed=%s)",
                table_name, sorted(removed), sorted(type_changed),
            )
            continue

        logger.warning(
            "Recreating table '%s' (removed=%s, type_changed=%s); stored documents are dropped",
            table_name, sorted(removed), sorted(type_changed),
        )
        with db_engine.begin() as conn:
            conn.execute(text(f'DROP TABLE "{table_name}"'))
        table.create(db_engine)


def create_db_and_tables(db_engine: Engine = engine) -> None:
    """Create missing tables, then apply additive migrations."""
    if db_engine is engine:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(db_engine)
    auto_migrate(db_engine)


def get_engine() -> Engine:
    """Return the process-wide engine; overridden in tests."""
    return engine


def get_session(db_engine: Engine = Depends(get_engine)):
    """Yield a database session for FastAPI dependency injection."""
    with Session(db_engine) as session:
        yield session
