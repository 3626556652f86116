"""Add sync_documents table

Revision ID: 20261017_sync_documents
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_sync_documents"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "sync_documents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sync_documents", schema=None) as batch_op:
        batch_op.create_index("ix_sync_documents_name", ["name"], unique=True)


def downgrade():
    with op.batch_alter_table("sync_documents", schema=None) as batch_op:
        batch_op.drop_index("ix_sync_documents_name")

    op.drop_table("sync_documents")
