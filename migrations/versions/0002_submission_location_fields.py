"""Add optional geolocation fields to submissions

Revision ID: 0002_submission_location_fields
Revises: 0001_create_submissions
Create Date: 2026-01-08 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002_submission_location_fields"
down_revision: Union[str, None] = "0001_create_submissions"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_COLUMNS = (
    ("latitude", sa.Float),
    ("longitude", sa.Float),
    ("location_accuracy", sa.Float),
    ("city", lambda: sa.String(length=100)),
    ("state", lambda: sa.String(length=100)),
    ("country", lambda: sa.String(length=100)),
    ("country_code", lambda: sa.String(length=10)),
    ("full_address", sa.Text),
    ("location_timestamp", sa.DateTime),
)


def _ensure_column(table: str, column: sa.Column) -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if table not in inspector.get_table_names():
        return
    existing = {col["name"] for col in inspector.get_columns(table)}
    if column.name in existing:
        return
    op.add_column(table, column)


def upgrade() -> None:
    for name, type_ in _COLUMNS:
        _ensure_column("submissions", sa.Column(name, type_(), nullable=True))


def downgrade() -> None:
    bind = op.get_bind()
    existing = {col["name"] for col in sa.inspect(bind).get_columns("submissions")}
    with op.batch_alter_table("submissions") as batch:
        for name, _ in reversed(_COLUMNS):
            if name in existing:
                batch.drop_column(name)
