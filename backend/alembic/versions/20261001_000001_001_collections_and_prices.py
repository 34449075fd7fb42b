"""Users, collection items, card prices and price alerts

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'collection_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('card_id', sa.String(64), nullable=False),
        sa.Column('collection_type', sa.String(20), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('treatment', sa.String(30), nullable=True),
        sa.Column('language', sa.String(30), nullable=True),
        sa.Column('acquired_price_cents', sa.Integer(), nullable=True),
        sa.Column('acquired_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'card_id', 'collection_type', name='uq_collection_items_user_card_type'),
        sa.CheckConstraint('quantity > 0 AND quantity <= 999', name='ck_collection_items_quantity'),
        sa.CheckConstraint(
            'acquired_price_cents IS NULL OR acquired_price_cents >= 0',
            name='ck_collection_items_price'
        ),
    )
    op.create_index('ix_collection_items_user_id', 'collection_items', ['user_id'], unique=False)
    op.create_index('ix_collection_items_card_id', 'collection_items', ['card_id'], unique=False)
    op.create_index('ix_collection_items_type_card', 'collection_items', ['collection_type', 'card_id'], unique=False)

    op.create_table(
        'card_prices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('card_id', sa.String(64), nullable=False),
        sa.Column('usd_cents', sa.Integer(), nullable=True),
        sa.Column('usd_foil_cents', sa.Integer(), nullable=True),
        sa.Column('usd_etched_cents', sa.Integer(), nullable=True),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('usd_cents IS NULL OR usd_cents >= 0', name='ck_card_prices_usd'),
        sa.CheckConstraint('usd_foil_cents IS NULL OR usd_foil_cents >= 0', name='ck_card_prices_usd_foil'),
        sa.CheckConstraint('usd_etched_cents IS NULL OR usd_etched_cents >= 0', name='ck_card_prices_usd_etched'),
    )
    op.create_index('ix_card_prices_card_id', 'card_prices', ['card_id'], unique=False)
    op.create_index(
        'ix_card_prices_card_fetched_desc',
        'card_prices',
        ['card_id', sa.text('fetched_at DESC')],
        unique=False
    )

    op.create_table(
        'price_alerts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('card_id', sa.String(64), nullable=False),
        sa.Column('alert_type', sa.String(20), nullable=False),
        sa.Column('old_price_cents', sa.Integer(), nullable=False),
        sa.Column('new_price_cents', sa.Integer(), nullable=False),
        sa.Column('percentage_change', sa.Numeric(10, 2), nullable=False),
        sa.Column('treatment', sa.String(30), nullable=True),
        sa.Column('dismissed', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('dismissed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('old_price_cents >= 0', name='ck_price_alerts_old_price'),
        sa.CheckConstraint('new_price_cents >= 0', name='ck_price_alerts_new_price'),
    )
    op.create_index('ix_price_alerts_user_id', 'price_alerts', ['user_id'], unique=False)
    op.create_index(
        'ix_price_alerts_user_card_created',
        'price_alerts',
        ['user_id', 'card_id', 'created_at'],
        unique=False
    )
    op.create_index('ix_price_alerts_user_dismissed', 'price_alerts', ['user_id', 'dismissed'], unique=False)


def downgrade() -> None:
    op.drop_table('price_alerts')
    op.drop_table('card_prices')
    op.drop_table('collection_items')
    op.drop_table('users')
