"""add_evaluation_form_derived

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-18

Adds:
- derived flag on evaluation_form, set on rows scored from the attempt
  ledger so the rollup never rescores a manually scored round
"""
from alembic import op
import sqlalchemy as sa

revision = '2b3c4d5e6f7a'
down_revision = '1a2b3c4d5e6f'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        'evaluation_form',
        sa.Column('derived', sa.Boolean(), nullable=False, server_default='false'),
    )


def downgrade() -> None:
    op.drop_column('evaluation_form', 'derived')
