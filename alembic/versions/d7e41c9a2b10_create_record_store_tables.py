"""create record store tables

Revision ID: d7e41c9a2b10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'd7e41c9a2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'zones',
        sa.Column('zone_name', sa.Text(), nullable=False),
        sa.Column('owner', sa.Text(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('zone_name'),
        schema='public'
    )
    op.create_table(
        'zone_shares',
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('zone_name', sa.Text(), nullable=False),
        sa.Column('owner', sa.Text(), nullable=False),
        sa.Column('root_record_name', sa.Text(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('token'),
        sa.UniqueConstraint('zone_name'),
        schema='public'
    )
    op.create_table(
        'zone_participants',
        sa.Column('zone_name', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('accepted_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('zone_name', 'user_id'),
        schema='public'
    )
    op.create_table(
        'records',
        sa.Column('zone_name', sa.Text(), nullable=False),
        sa.Column('record_name', sa.Text(), nullable=False),
        sa.Column('record_type', sa.Text(), nullable=False),
        sa.Column('data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('modified_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('seq', sa.BigInteger(), sa.Identity(), nullable=False),
        sa.PrimaryKeyConstraint('zone_name', 'record_name'),
        schema='public'
    )
    # Zone-scoped queries return records in insertion order
    op.create_index(
        'ix_records_zone_type_seq',
        'records',
        ['zone_name', 'record_type', 'seq'],
        schema='public'
    )
    op.create_table(
        'subscriptions',
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('subscription_id', sa.Text(), nullable=False),
        sa.Column('zone_name', sa.Text(), nullable=False),
        sa.Column('record_type', sa.Text(), nullable=False),
        sa.Column('alert_field', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'subscription_id'),
        schema='public'
    )


def downgrade() -> None:
    op.drop_table('subscriptions', schema='public')
    op.drop_index('ix_records_zone_type_seq', table_name='records', schema='public')
    op.drop_table('records', schema='public')
    op.drop_table('zone_participants', schema='public')
    op.drop_table('zone_shares', schema='public')
    op.drop_table('zones', schema='public')
