"""Create contact discovery tables

Revision ID: 001_contact_discovery
Revises:
Create Date: 2026-10-19

users mirrors the identity provider; phone_identities is the hashed
discoverability index; contacts holds each owner's matched address book
entries; contact_sync_status tracks the latest sync per user.
"""
from alembic import op
import sqlalchemy as sa


revision = '001_contact_discovery'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users, phone_identities, contacts and contact_sync_status."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True, index=True),
        sa.Column('avatar_url', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'phone_identities',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('phone_hash', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    # One owner per hash; also the lookup index for matching
    op.create_index('ix_phone_identities_phone_hash', 'phone_identities', ['phone_hash'], unique=True)

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('phone_hash', sa.String(length=64), nullable=False, index=True),
        sa.Column('linked_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('is_favorite', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_interaction_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('owner_id', 'phone_hash', name='uq_contacts_owner_phone_hash'),
        sa.CheckConstraint(
            'linked_user_id IS NULL OR linked_user_id <> owner_id',
            name='chk_contacts_no_self_link'
        ),
    )
    op.create_index('idx_contacts_owner_last_interaction', 'contacts', ['owner_id', 'last_interaction_at'])

    op.create_table(
        'contact_sync_status',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', index=True),
        sa.Column('device_contacts_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('synced_contacts_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(), nullable=True),
        sa.Column('sync_started_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop contact discovery tables."""
    op.drop_table('contact_sync_status')
    op.drop_index('idx_contacts_owner_last_interaction', table_name='contacts')
    op.drop_table('contacts')
    op.drop_index('ix_phone_identities_phone_hash', table_name='phone_identities')
    op.drop_table('phone_identities')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
