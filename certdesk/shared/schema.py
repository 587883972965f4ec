"""Startup schema guard for the submissions table.

Only additive, nullable changes are made so an older database keeps working.
Running it twice is a no-op.
"""

from __future__ import annotations

import sqlalchemy as sa

from ..models import Submission

TABLE = Submission.__tablename__


def ensure_submission_schema(engine) -> list[str]:
    inspector = sa.inspect(engine)
    if TABLE not in inspector.get_table_names():
        Submission.__table__.create(engine)
        return [f"created {TABLE}"]

    existing = {col["name"] for col in inspector.get_columns(TABLE)}
    added: list[str] = []
    with engine.begin() as conn:
        for column in Submission.__table__.columns:
            if column.name in existing:
                continue
            ddl_type = column.type.compile(dialect=engine.dialect)
            conn.execute(sa.text(f"ALTER TABLE {TABLE} ADD COLUMN {column.name} {ddl_type}"))
            added.append(f"{TABLE}.{column.name}")
        if f"{TABLE}.certificate_sent" in added:
            conn.execute(
                sa.text(f"UPDATE {TABLE} SET certificate_sent = :no WHERE certificate_sent IS NULL"),
                {"no": False},
            )
    return added
