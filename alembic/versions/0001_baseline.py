"""baseline

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- creators ---
    op.create_table(
        'creators',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('handle', sa.String(), unique=True, nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # --- fans ---
    op.create_table(
        'fans',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('creator_id', sa.String(), sa.ForeignKey('creators.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('is_new', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('adult_confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_intent_key', sa.String(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_purchase_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('temperature_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('temperature_bucket', sa.String(), nullable=False, server_default='COLD'),
        sa.Column('next_action', sa.String(), nullable=True),
        sa.Column('preview', sa.String(), nullable=True),
        sa.Column('preview_time', sa.String(), nullable=True),
        sa.Column('signals_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # --- catalog ---
    op.create_table(
        'offers',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('creator_id', sa.String(), sa.ForeignKey('creators.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('code', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('tier', sa.String(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(), nullable=False, server_default='EUR'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('creator_id', 'code', name='uq_offer_creator_code'),
    )
    op.create_table(
        'packs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('creator_id', sa.String(), sa.ForeignKey('creators.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('price', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
    )
    op.create_table(
        'content_items',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('creator_id', sa.String(), sa.ForeignKey('creators.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('pack', sa.String(), nullable=False, server_default='WELCOME'),
        sa.Column('type', sa.String(), nullable=False, server_default='TEXT'),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('visibility', sa.String(), nullable=False, server_default='VIP'),
        sa.Column('is_preview', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_extra', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('creator_id', 'slug', name='uq_content_item_creator_slug'),
    )
    op.create_table(
        'ppv_messages',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('creator_id', sa.String(), sa.ForeignKey('creators.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('fan_id', sa.String(), sa.ForeignKey('fans.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('message_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(), nullable=False, server_default='EUR'),
        sa.Column('status', sa.String(), nullable=False, server_default='LOCKED'),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('purchase_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_ppv_message_creator_fan', 'ppv_messages', ['creator_id', 'fan_id'])

    # --- wallets ---
    op.create_table(
        'wallets',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('fan_id', sa.String(), sa.ForeignKey('fans.id', ondelete='CASCADE'), nullable=False, unique=True, index=True),
        sa.Column('currency', sa.String(), nullable=False, server_default='EUR'),
        sa.Column('balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('balance_cents >= 0', name='ck_wallet_balance_non_negative'),
    )
    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('wallet_id', sa.String(), sa.ForeignKey('wallets.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('balance_after_cents', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(), nullable=True, unique=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_wallet_tx_wallet_ts', 'wallet_transactions', ['wallet_id', 'created_at'])

    # --- access grants ---
    op.create_table(
        'access_grants',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('fan_id', sa.String(), sa.ForeignKey('fans.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_access_grant_fan_type_exp', 'access_grants', ['fan_id', 'type', 'expires_at'])

    # --- purchases ---
    op.create_table(
        'purchases',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('fan_id', sa.String(), sa.ForeignKey('fans.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('content_item_id', sa.String(), sa.ForeignKey('content_items.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('tier', sa.String(), nullable=False, server_default='T0'),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.String(), nullable=True),
        sa.Column('product_type', sa.String(), nullable=True),
        sa.Column('client_txn_id', sa.String(), nullable=True),
        sa.Column('session_tag', sa.String(), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('fan_id', 'kind', 'client_txn_id', name='uq_purchase_fan_kind_client_txn'),
    )
    op.create_index('ix_purchase_fan_ts', 'purchases', ['fan_id', 'created_at'])
    op.create_table(
        'ppv_purchases',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('ppv_message_id', sa.String(), sa.ForeignKey('ppv_messages.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('fan_id', sa.String(), sa.ForeignKey('fans.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('creator_id', sa.String(), sa.ForeignKey('creators.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(), nullable=False, server_default='EUR'),
        sa.Column('status', sa.String(), nullable=False, server_default='PAID'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('ppv_message_id', 'fan_id', name='uq_ppv_purchase_message_fan'),
    )


def downgrade() -> None:
    op.drop_table('ppv_purchases')
    op.drop_index('ix_purchase_fan_ts', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('ix_access_grant_fan_type_exp', table_name='access_grants')
    op.drop_table('access_grants')
    op.drop_index('ix_wallet_tx_wallet_ts', table_name='wallet_transactions')
    op.drop_table('wallet_transactions')
    op.drop_table('wallets')
    op.drop_index('ix_ppv_message_creator_fan', table_name='ppv_messages')
    op.drop_table('ppv_messages')
    op.drop_table('content_items')
    op.drop_table('packs')
    op.drop_table('offers')
    op.drop_table('fans')
    op.drop_table('creators')
