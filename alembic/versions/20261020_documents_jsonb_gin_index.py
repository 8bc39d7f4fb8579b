"""Store document data as JSONB with a GIN index on PostgreSQL.

Revision ID: d2e3f4a5b6c7
Revises: c1d2e3f4a5b6
Create Date: 2026-10-20 09:00:00.000000

Lets notification and archive queries filter on array membership
(``recipients``, ``members``) inside the database. Other backends keep the
plain JSON column.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'd2e3f4a5b6c7'
down_revision: Union[str, None] = 'c1d2e3f4a5b6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == 'postgresql'


def upgrade() -> None:
    if not _is_postgres():
        return

    op.alter_column(
        'Documents',
        'data',
        type_=postgresql.JSONB(),
        existing_type=sa.JSON(),
        existing_nullable=False,
        postgresql_using='data::jsonb',
    )
    op.create_index(
        'ix_Documents_data',
        'Documents',
        ['data'],
        unique=False,
        postgresql_using='gin',
    )


def downgrade() -> None:
    if not _is_postgres():
        return

    op.drop_index('ix_Documents_data', table_name='Documents')
    op.alter_column(
        'Documents',
        'data',
        type_=sa.JSON(),
        existing_type=postgresql.JSONB(),
        existing_nullable=False,
        postgresql_using='data::json',
    )
