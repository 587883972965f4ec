"""Add certificate fulfillment fields to submissions

Revision ID: 0003_submission_fulfillment_fields
Revises: 0002_submission_location_fields
Create Date: 2026-01-12 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0003_submission_fulfillment_fields"
down_revision: Union[str, None] = "0002_submission_location_fields"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


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
    _ensure_column("submissions", sa.Column("certificate_key", sa.String(length=500)))
    _ensure_column("submissions", sa.Column("certificate_url", sa.Text()))
    _ensure_column(
        "submissions",
        sa.Column(
            "certificate_sent",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
    )
    _ensure_column("submissions", sa.Column("certificate_sent_at", sa.DateTime()))
    _ensure_column("submissions", sa.Column("delivery_channel", sa.String(length=10)))

    op.execute(
        sa.text(
            """
            UPDATE submissions
            SET certificate_sent = COALESCE(certificate_sent, false)
            """
        )
    )


def downgrade() -> None:
    bind = op.get_bind()
    existing = {col["name"] for col in sa.inspect(bind).get_columns("submissions")}
    with op.batch_alter_table("submissions") as batch:
        for name in (
            "delivery_channel",
            "certificate_sent_at",
            "certificate_sent",
            "certificate_url",
            "certificate_key",
        ):
            if name in existing:
                batch.drop_column(name)
