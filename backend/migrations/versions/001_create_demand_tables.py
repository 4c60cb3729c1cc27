"""Create demand and demand_match tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'demand',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('requester_id', sa.BigInteger(), nullable=True),
        sa.Column('requester_company', sa.Text(), nullable=True),
        sa.Column('bearing_number', sa.Text(), nullable=False),
        sa.Column('brand', sa.Text(), nullable=True),
        sa.Column('specification', sa.Text(), nullable=True),
        sa.Column('required_quantity', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('min_price', sa.Numeric(18, 4), nullable=True),
        sa.Column('max_price', sa.Numeric(18, 4), nullable=True),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default=sa.text("'Active'"), nullable=False),
        sa.Column('total_matches', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_check_constraint(
        'ck_demand_total_matches_non_negative',
        'demand',
        sa.text('total_matches >= 0')
    )

    op.create_index('ix_demand_bearing_number', 'demand', ['bearing_number'])
    op.create_index('ix_demand_status', 'demand', ['status'])

    op.create_table(
        'demand_match',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('demand_id', sa.BigInteger(), nullable=False),
        sa.Column('supplier_id', sa.BigInteger(), nullable=False),
        sa.Column('supplier_name', sa.Text(), nullable=False),
        sa.Column('match_score', sa.Numeric(5, 4), nullable=False),
        sa.Column('match_reason', sa.Text(), nullable=False),
        sa.Column('match_details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_notified', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('notified_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('has_responded', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('responded_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('is_interested', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_foreign_key(
        'fk_demand_match_demand',
        'demand_match', 'demand',
        ['demand_id'], ['id'],
        ondelete='CASCADE'
    )

    # One row per (demand, supplier); duplicate inserts are no-ops
    op.create_unique_constraint(
        'uq_demand_match_demand_supplier',
        'demand_match',
        ['demand_id', 'supplier_id']
    )

    op.create_check_constraint(
        'ck_demand_match_score_range',
        'demand_match',
        sa.text('match_score >= 0 AND match_score <= 1')
    )

    op.create_index('ix_demand_match_supplier_id', 'demand_match', ['supplier_id'])
    op.create_index('ix_demand_match_score', 'demand_match', ['match_score'])


def downgrade():
    op.drop_index('ix_demand_match_score', table_name='demand_match')
    op.drop_index('ix_demand_match_supplier_id', table_name='demand_match')
    op.drop_table('demand_match')

    op.drop_index('ix_demand_status', table_name='demand')
    op.drop_index('ix_demand_bearing_number', table_name='demand')
    op.drop_table('demand')
