"""Concurrency guards for rack occupancy checks and anomaly batches.

Revision ID: 002_concurrency_guards
Revises: 001_initial
Create Date: 2026-10-19

Adds racks.lock_version (bumped by every write that checks a rack's occupancy) and
anomalies.batch_index with a unique index on (site_id, idempotency_key, batch_index)
so a keyed scan batch is stored once.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_concurrency_guards'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        'racks',
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),
    )
    op.add_column(
        'anomalies',
        sa.Column('batch_index', sa.Integer(), nullable=True),
    )
    op.create_index(
        'uq_anomalies_site_batch', 'anomalies',
        ['site_id', 'idempotency_key', 'batch_index'], unique=True,
    )


def downgrade() -> None:
    op.drop_index('uq_anomalies_site_batch', table_name='anomalies')
    op.drop_column('anomalies', 'batch_index')
    op.drop_column('racks', 'lock_version')
