"""Keep the manual day a leave request stamp replaced

Revision ID: 002_prior_slot
Revises: 001_initial
Create Date: 2026-10-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_prior_slot'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('day_entries', sa.Column('prior_slot', sa.JSON(), nullable=True))


def downgrade() -> None:
    op.drop_column('day_entries', 'prior_slot')
