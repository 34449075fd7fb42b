"""Commanders, decklists and scraper executions

Revision ID: 002
Revises: 001
Create Date: 2026-10-01 00:00:02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'commanders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.Column('edhrec_url', sa.String(500), nullable=False),
        sa.Column('last_scraped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index('ix_commanders_rank', 'commanders', ['rank'], unique=False)

    op.create_table(
        'decklists',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('commander_id', sa.Integer(), nullable=False),
        sa.Column('partner_id', sa.Integer(), nullable=True),
        sa.Column('contents', postgresql.JSONB(), nullable=False),
        sa.Column('vector', postgresql.TSVECTOR(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['commander_id'], ['commanders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['partner_id'], ['commanders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('commander_id', 'partner_id', name='uq_decklists_commander_partner')
    )
    op.create_index('ix_decklists_commander_id', 'decklists', ['commander_id'], unique=False)
    # NULL partners never collide in the constraint above
    op.create_index(
        'uq_decklists_solo_commander',
        'decklists',
        ['commander_id'],
        unique=True,
        postgresql_where=sa.text('partner_id IS NULL')
    )
    op.create_index('ix_decklists_vector', 'decklists', ['vector'], unique=False, postgresql_using='gin')

    op.create_table(
        'scraper_executions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), server_default='success', nullable=False),
        sa.Column('commanders_attempted', sa.Integer(), server_default='0', nullable=False),
        sa.Column('commanders_succeeded', sa.Integer(), server_default='0', nullable=False),
        sa.Column('commanders_failed', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_cards_processed', sa.Integer(), server_default='0', nullable=False),
        sa.Column('error_summary', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('commanders_attempted >= 0', name='ck_scraper_executions_attempted'),
        sa.CheckConstraint('commanders_succeeded >= 0', name='ck_scraper_executions_succeeded'),
        sa.CheckConstraint('commanders_failed >= 0', name='ck_scraper_executions_failed'),
        sa.CheckConstraint('total_cards_processed >= 0', name='ck_scraper_executions_cards'),
    )
    op.create_index('ix_scraper_executions_started_at', 'scraper_executions', ['started_at'], unique=False)
    op.create_index('ix_scraper_executions_status', 'scraper_executions', ['status'], unique=False)


def downgrade() -> None:
    op.drop_table('scraper_executions')
    op.drop_table('decklists')
    op.drop_table('commanders')
