# listsync/models/records_table.py
# Records of every zone; (zone_name, record_name) is the record identity

from sqlalchemy import BigInteger, Identity, Table, Column, Text, TIMESTAMP, Index, PrimaryKeyConstraint
from sqlalchemy.dialects.postgresql import JSONB

from listsync.db.base import metadata


records = Table(
    'records',
    metadata,
    Column('zone_name', Text, nullable=False),
    Column('record_name', Text, nullable=False),
    Column('record_type', Text, nullable=False),
    Column('data', JSONB, nullable=False),  # record fields
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
    Column('modified_at', TIMESTAMP(timezone=True), nullable=False),
    Column('seq', BigInteger, Identity(), nullable=False),  # insertion order, kept on upsert
    PrimaryKeyConstraint('zone_name', 'record_name'),
    Index('ix_records_zone_type_seq', 'zone_name', 'record_type', 'seq'),
    schema='public',
)
