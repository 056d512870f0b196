"""create users, parts, stock ledger and stock levels

Revision ID: 0001_stock_ledger
Revises:
Create Date: 2026-10-18 10:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '0001_stock_ledger'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLES = (
    'student', 'trainer', 'teacher', 'admin', 'judge',
    'editor', 'organizer', 'superadmin', 'reception', 'clo',
)
STOCK_REASONS = (
    'purchase', 'adjustment', 'used', 'damaged', 'return', 'other',
    'reserve', 'release', 'fulfill', 'cancel',
)


def _audit_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_by', sa.Integer()),
        sa.Column('updated_by', sa.Integer()),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        *_audit_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum(*USER_ROLES, name='user_role'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'parts',
        *_audit_columns(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('group', sa.String(length=100)),
        sa.Column('part_number', sa.String(length=100)),
    )
    op.create_index('ix_parts_id', 'parts', ['id'])
    op.create_index('ix_parts_name', 'parts', ['name'])
    op.create_index('ix_parts_sku', 'parts', ['sku'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=False),
        sa.Column('qty_change', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Enum(*STOCK_REASONS, name='stock_reason'), nullable=False),
        sa.Column('order_id', sa.Integer()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_stock_movements_id', 'stock_movements', ['id'])
    op.create_index('ix_stock_movements_part_id', 'stock_movements', ['part_id'])
    op.create_index('ix_stock_movements_created_at', 'stock_movements', ['created_at'])
    op.create_index('ix_stock_movements_part_created', 'stock_movements', ['part_id', 'created_at'])

    op.create_table(
        'stock_levels',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=False, unique=True),
        sa.Column('available_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('used_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('damaged_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_stock_levels_id', 'stock_levels', ['id'])
    print("✓ [0001_stock_ledger] Created users, parts, stock_movements, stock_levels")


def downgrade() -> None:
    op.drop_table('stock_levels')
    op.drop_table('stock_movements')
    op.drop_table('parts')
    op.drop_table('users')
    sa.Enum(name='stock_reason').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='user_role').drop(op.get_bind(), checkfirst=True)
