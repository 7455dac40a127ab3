"""Initial asset lifecycle schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table (actors; credentials live with the identity provider)
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='USER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_id', 'users', ['id'], unique=False)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create locations table
    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index('ix_locations_id', 'locations', ['id'], unique=False)

    # Create assets table
    op.create_table(
        'assets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_number', sa.String(10), nullable=False),
        sa.Column('serial_number', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('state', sa.String(20), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=True),
        sa.Column('assignment_type', sa.String(20), nullable=True),
        sa.Column('assigned_to', sa.String(255), nullable=True),
        sa.Column('employee_id', sa.String(50), nullable=True),
        sa.Column('department', sa.String(255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('serial_number')
    )
    op.create_index('ix_assets_id', 'assets', ['id'], unique=False)
    op.create_index('ix_assets_asset_number', 'assets', ['asset_number'], unique=True)
    op.create_index('ix_assets_type', 'assets', ['type'], unique=False)
    op.create_index('ix_assets_state', 'assets', ['state'], unique=False)

    # Create asset_history table (append-only audit trail)
    op.create_table(
        'asset_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('previous_state', sa.String(20), nullable=True),
        sa.Column('new_state', sa.String(20), nullable=False),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('change_reason', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id']),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('asset_id', 'sequence', name='uq_asset_history_asset_sequence')
    )
    op.create_index('ix_asset_history_id', 'asset_history', ['id'], unique=False)
    op.create_index('ix_asset_history_asset_id', 'asset_history', ['asset_id'], unique=False)

    # Create asset_sequences table (asset number counters)
    op.create_table(
        'asset_sequences',
        sa.Column('prefix', sa.String(2), nullable=False),
        sa.Column('next_sequence', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('prefix')
    )


def downgrade() -> None:
    op.drop_table('asset_sequences')
    op.drop_index('ix_asset_history_asset_id', table_name='asset_history')
    op.drop_index('ix_asset_history_id', table_name='asset_history')
    op.drop_table('asset_history')
    op.drop_index('ix_assets_state', table_name='assets')
    op.drop_index('ix_assets_type', table_name='assets')
    op.drop_index('ix_assets_asset_number', table_name='assets')
    op.drop_index('ix_assets_id', table_name='assets')
    op.drop_table('assets')
    op.drop_index('ix_locations_id', table_name='locations')
    op.drop_table('locations')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
