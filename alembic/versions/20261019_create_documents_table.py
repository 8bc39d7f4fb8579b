"""Create Documents table.

Revision ID: c1d2e3f4a5b6
Revises:
Create Date: 2026-10-19 09:00:00.000000

Backing table of the hierarchical document store. Every project, issue,
todo, comment, reply, notification and user profile is one row keyed by
its full path.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'c1d2e3f4a5b6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the Documents table and its lookup indexes."""
    op.create_table(
        'Documents',
        sa.Column('path', sa.String(length=1024), nullable=False),
        sa.Column('collection', sa.String(length=1024), nullable=False),
        sa.Column('doc_id', sa.String(length=255), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('path'),
    )

    op.create_index(
        'ix_Documents_collection',
        'Documents',
        ['collection'],
        unique=False
    )
    op.create_index(
        'ix_Documents_collection_doc_id',
        'Documents',
        ['collection', 'doc_id'],
        unique=False
    )


def downgrade() -> None:
    """Drop the Documents table."""
    op.drop_index('ix_Documents_collection_doc_id', table_name='Documents')
    op.drop_index('ix_Documents_collection', table_name='Documents')
    op.drop_table('Documents')
