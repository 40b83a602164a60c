# listsync/models/zones_table.py
# Zones, their shares and the users that accepted them

from sqlalchemy import Table, Column, Text, TIMESTAMP, PrimaryKeyConstraint

from listsync.db.base import metadata


zones = Table(
    'zones',
    metadata,
    Column('zone_name', Text, primary_key=True),
    Column('owner', Text, nullable=False),
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
    schema='public',
)

zone_shares = Table(
    'zone_shares',
    metadata,
    Column('token', Text, primary_key=True),  # random URL-safe token
    Column('zone_name', Text, nullable=False, unique=True),  # one share per zone
    Column('owner', Text, nullable=False),
    Column('root_record_name', Text, nullable=False),
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
    schema='public',
)

zone_participants = Table(
    'zone_participants',
    metadata,
    Column('zone_name', Text, nullable=False),
    Column('user_id', Text, nullable=False),
    Column('accepted_at', TIMESTAMP(timezone=True), nullable=False),
    PrimaryKeyConstraint('zone_name', 'user_id'),
    schema='public',
)
