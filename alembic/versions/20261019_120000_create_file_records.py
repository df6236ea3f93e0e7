"""创建file_records表

Revision ID: 20261019_120000
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261019_120000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """创建file_records表

    主键为 (owner_id, file_id)，file_id 另有唯一约束用于仅按文件ID查找
    """
    op.create_table(
        'file_records',
        sa.Column('owner_id', sa.String(length=128), nullable=False),
        sa.Column('file_id', sa.String(length=64), nullable=False),
        sa.Column('file_name', sa.String(length=1024), nullable=False),
        sa.Column('sanitized_storage_name', sa.String(length=255), nullable=False),
        sa.Column('file_type', sa.String(length=255), nullable=False),
        sa.Column('declared_size', sa.BigInteger(), nullable=True),
        sa.Column('actual_size', sa.BigInteger(), nullable=True),
        sa.Column('storage_key', sa.String(length=1024), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending_upload'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('owner_id', 'file_id'),
        sa.UniqueConstraint('file_id', name='uq_file_records_file_id'),
    )
    op.create_index(
        'ix_file_records_owner_created',
        'file_records',
        ['owner_id', 'created_at'],
    )


def downgrade() -> None:
    """删除file_records表"""
    op.drop_index('ix_file_records_owner_created', table_name='file_records')
    op.drop_table('file_records')
