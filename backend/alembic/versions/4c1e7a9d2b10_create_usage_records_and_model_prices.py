"""create_usage_records_and_model_prices

Revision ID: 4c1e7a9d2b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e7a9d2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'usage_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('synced_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('route', sa.String(255), nullable=False),
        sa.Column('model', sa.String(255), nullable=False),
        sa.Column('total_tokens', sa.BigInteger(), nullable=False),
        sa.Column('input_tokens', sa.BigInteger(), nullable=False),
        sa.Column('output_tokens', sa.BigInteger(), nullable=False),
        sa.Column('reasoning_tokens', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('cached_tokens', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('total_requests', sa.Integer(), nullable=False),
        sa.Column('success_count', sa.Integer(), nullable=False),
        sa.Column('failure_count', sa.Integer(), nullable=False),
        sa.Column('is_error', sa.Boolean(), nullable=False),
        sa.Column('raw', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('occurred_at', 'route', 'model', name='uq_usage_records_occurred_route_model'),
    )
    op.create_index('ix_usage_records_occurred_at', 'usage_records', ['occurred_at'])
    op.create_index('ix_usage_records_route', 'usage_records', ['route'])
    op.create_index('ix_usage_records_model', 'usage_records', ['model'])

    op.create_table(
        'model_prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('model', sa.String(255), nullable=False),
        sa.Column('input_price_per_1m', sa.Numeric(12, 6), nullable=False),
        sa.Column('cached_input_price_per_1m', sa.Numeric(12, 6), server_default='0', nullable=False),
        sa.Column('output_price_per_1m', sa.Numeric(12, 6), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_model_prices_id', 'model_prices', ['id'])
    op.create_index('ix_model_prices_model', 'model_prices', ['model'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_model_prices_model', table_name='model_prices')
    op.drop_index('ix_model_prices_id', table_name='model_prices')
    op.drop_table('model_prices')
    op.drop_index('ix_usage_records_model', table_name='usage_records')
    op.drop_index('ix_usage_records_route', table_name='usage_records')
    op.drop_index('ix_usage_records_occurred_at', table_name='usage_records')
    op.drop_table('usage_records')
