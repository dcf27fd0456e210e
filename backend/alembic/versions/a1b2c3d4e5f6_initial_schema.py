"""initial schema: users, wallets, fighters, fights, bets, transactions, notifications

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('user', 'admin', name='userrole')
fight_status = sa.Enum('SCHEDULED', 'ONGOING', 'FINISHED', 'CANCELLED', 'POSTPONED', name='fightstatus')
corner = sa.Enum('A', 'B', name='corner')
bet_status = sa.Enum('PENDING', 'ACCEPTED', 'WON', 'LOST', 'CANCELLED', 'POSTPONED', name='betstatus')
transaction_type = sa.Enum(
    'DEPOSIT', 'WITHDRAWAL', 'BET_PLACED', 'BET_WIN', 'BET_REFUND', 'COMMISSION', 'BONUS', 'PENALTY',
    name='transactiontype',
)
transaction_status = sa.Enum('PENDING', 'CONFIRMED', 'FAILED', 'CANCELLED', name='transactionstatus')
payment_provider = sa.Enum('WAVE', 'ORANGE_MONEY', 'FREE_MONEY', name='paymentprovider')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('balance', sa.BigInteger(), nullable=False),
        sa.Column('bonus_balance', sa.BigInteger(), nullable=False),
        sa.Column('locked_balance', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('balance >= 0', name='ck_wallet_balance_non_negative'),
        sa.CheckConstraint('bonus_balance >= 0', name='ck_wallet_bonus_non_negative'),
        sa.CheckConstraint('locked_balance >= 0', name='ck_wallet_locked_non_negative'),
    )

    op.create_table(
        'fighters',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('nickname', sa.String(100), nullable=True),
        sa.Column('stable', sa.String(100), nullable=True),
        sa.Column('wins', sa.Integer(), nullable=False),
        sa.Column('losses', sa.Integer(), nullable=False),
        sa.Column('draws', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'fights',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('fighter_a_id', sa.Integer(), sa.ForeignKey('fighters.id'), nullable=False),
        sa.Column('fighter_b_id', sa.Integer(), sa.ForeignKey('fighters.id'), nullable=False),
        sa.Column('odds_a', sa.Numeric(6, 2), nullable=False),
        sa.Column('odds_b', sa.Numeric(6, 2), nullable=False),
        sa.Column('status', fight_status, nullable=False),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'fight_results',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('fight_id', sa.Integer(), sa.ForeignKey('fights.id'), nullable=False, unique=True),
        sa.Column('winner', corner, nullable=False),
        sa.Column('victory_method', sa.String(50), nullable=True),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('validated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'bets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('fight_id', sa.Integer(), sa.ForeignKey('fights.id'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('chosen_fighter', corner, nullable=False),
        sa.Column('odds', sa.Numeric(6, 2), nullable=False),
        sa.Column('potential_win', sa.BigInteger(), nullable=False),
        sa.Column('actual_win', sa.BigInteger(), nullable=False),
        sa.Column('status', bet_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_bet_amount_positive'),
    )
    op.create_index('ix_bets_creator_id', 'bets', ['creator_id'])
    op.create_index('ix_bets_fight_id', 'bets', ['fight_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('type', transaction_type, nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('status', transaction_status, nullable=False),
        sa.Column('provider', payment_provider, nullable=True),
        sa.Column('external_ref', sa.String(100), nullable=True),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('bet_id', sa.Integer(), sa.ForeignKey('bets.id'), nullable=True),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_transaction_amount_positive'),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_external_ref', 'transactions', ['external_ref'])
    op.create_index('ix_transactions_bet_id', 'transactions', ['bet_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.String(1000), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('transactions')
    op.drop_table('bets')
    op.drop_table('fight_results')
    op.drop_table('fights')
    op.drop_table('fighters')
    op.drop_table('wallets')
    op.drop_table('users')
    bind = op.get_bind()
    for enum in (payment_provider, transaction_status, transaction_type, bet_status, corner, fight_status, user_role):
        enum.drop(bind, checkfirst=True)
