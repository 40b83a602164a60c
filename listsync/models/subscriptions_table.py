# listsync/models/subscriptions_table.py
# Per-user push registrations on a zone

from sqlalchemy import Table, Column, Text, TIMESTAMP, PrimaryKeyConstraint

from listsync.db.base import metadata


subscriptions = Table(
    'subscriptions',
    metadata,
    Column('user_id', Text, nullable=False),
    Column('subscription_id', Text, nullable=False),
    Column('zone_name', Text, nullable=False),
    Column('record_type', Text, nullable=False),
    Column('alert_field', Text, nullable=True),
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
    PrimaryKeyConstraint('user_id', 'subscription_id'),
    schema='public',
)
