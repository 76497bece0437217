"""
Dialect-specific INSERT ... ON CONFLICT builder.

Ledger and graph counters must be incremented by the database in one
statement; an application-level read-modify-write loses updates when two
ingestions touch the same key. PostgreSQL (production) and SQLite (tests)
both support ON CONFLICT DO UPDATE with the same SQLAlchemy API.
"""
from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def upsert_insert(db: Session, table: Table):
    """Return a dialect `Insert` exposing `.on_conflict_do_update()` and `.excluded`."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Atomic upsert is not supported on dialect {dialect!r}")
