"""initial box office schema

Revision ID: 3b9e1c7d2a40
Revises:
Create Date: 2025-06-02 10:14:37.218904

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b9e1c7d2a40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CATEGORIES = "'studente', 'docente', 'strumentista', 'urbinate_u18_o70', 'altro'"


def upgrade() -> None:
    """Create persons, events, tariffs, cards, sales, redemptions and revocations."""
    op.create_table(
        'persons',
        sa.Column('id', sa.String(length=36), nullable=False, comment='Person UUID'),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False, comment='Tariff category'),
        sa.Column('document_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_persons'),
        sa.CheckConstraint(f"category IN ({CATEGORIES})", name='ck_persons_category'),
    )
    op.create_index('ix_persons_category', 'persons', ['category'])

    op.create_table(
        'events',
        sa.Column('id', sa.String(length=36), nullable=False, comment='Event UUID'),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False, comment='YYYY-MM-DD'),
        sa.Column('venue', sa.String(length=200), nullable=True),
        sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_events'),
        sa.CheckConstraint('base_price >= 0', name='ck_events_base_price'),
    )

    op.create_table(
        'tariffs',
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.PrimaryKeyConstraint('category', name='pk_tariffs'),
        sa.CheckConstraint(f"category IN ({CATEGORIES})", name='ck_tariffs_category'),
        sa.CheckConstraint('price >= 0', name='ck_tariffs_price'),
    )

    op.create_table(
        'cards',
        sa.Column('id', sa.String(length=36), nullable=False, comment='Card UUID'),
        sa.Column('person_id', sa.String(length=36), nullable=False),
        sa.Column('state', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('token', sa.Text(), nullable=False, comment='Signed token text'),
        sa.Column('expiry_date', sa.String(length=10), nullable=False, comment='YYYY-MM-DD'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_cards'),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], name='fk_cards_person_id'),
        sa.CheckConstraint("state IN ('active', 'revoked')", name='ck_cards_state'),
    )
    op.create_index('ix_cards_person_id', 'cards', ['person_id'])
    op.create_index('idx_cards_state_expiry', 'cards', ['state', 'expiry_date'])

    # At most one active card per person
    op.create_index(
        'ux_cards_one_active_per_person',
        'cards',
        ['person_id'],
        unique=True,
        sqlite_where=sa.text("state = 'active'"),
        postgresql_where=sa.text("state = 'active'"),
    )

    op.create_table(
        'sales',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('card_id', sa.String(length=36), nullable=False),
        sa.Column('event_id', sa.String(length=36), nullable=False),
        sa.Column('price_paid', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('register_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('annulled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id', name='pk_sales'),
        sa.ForeignKeyConstraint(['card_id'], ['cards.id'], name='fk_sales_card_id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], name='fk_sales_event_id'),
    )
    op.create_index('idx_sales_card_event', 'sales', ['card_id', 'event_id'])
    op.create_index('idx_sales_created_at', 'sales', ['created_at'])

    op.create_table(
        'redemptions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('card_id', sa.String(length=36), nullable=False),
        sa.Column('event_id', sa.String(length=36), nullable=False),
        sa.Column('sale_id', sa.String(length=36), nullable=True),
        sa.Column('operator', sa.String(length=100), nullable=False),
        sa.Column('outcome', sa.String(length=32), nullable=False, server_default='ok'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('annulled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('annulled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('annulled_by', sa.String(length=100), nullable=True),
        sa.Column('annulment_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_redemptions'),
        sa.ForeignKeyConstraint(['card_id'], ['cards.id'], name='fk_redemptions_card_id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], name='fk_redemptions_event_id'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_redemptions_sale_id'),
    )
    op.create_index('idx_redemptions_created_at', 'redemptions', ['created_at'])

    # Double-spend guard: one valid redemption per (card, event)
    op.create_index(
        'ux_redemptions_ok_active',
        'redemptions',
        ['card_id', 'event_id'],
        unique=True,
        sqlite_where=sa.text("outcome = 'ok' AND NOT annulled"),
        postgresql_where=sa.text("outcome = 'ok' AND NOT annulled"),
    )

    op.create_table(
        'revocations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('card_id', sa.String(length=36), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('operator', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_revocations'),
        sa.ForeignKeyConstraint(['card_id'], ['cards.id'], name='fk_revocations_card_id'),
    )
    op.create_index('ix_revocations_card_id', 'revocations', ['card_id'])


def downgrade() -> None:
    """Drop the box office schema."""
    op.drop_index('ix_revocations_card_id', table_name='revocations')
    op.drop_table('revocations')
    op.drop_index('ux_redemptions_ok_active', table_name='redemptions')
    op.drop_index('idx_redemptions_created_at', table_name='redemptions')
    op.drop_table('redemptions')
    op.drop_index('idx_sales_created_at', table_name='sales')
    op.drop_index('idx_sales_card_event', table_name='sales')
    op.drop_table('sales')
    op.drop_index('ux_cards_one_active_per_person', table_name='cards')
    op.drop_index('idx_cards_state_expiry', table_name='cards')
    op.drop_index('ix_cards_person_id', table_name='cards')
    op.drop_table('cards')
    op.drop_table('tariffs')
    op.drop_table('events')
    op.drop_index('ix_persons_category', table_name='persons')
    op.drop_table('persons')
