"""initial_schema

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-18 10:12:44.218530

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column('id', sa.String(length=36), primary_key=True)


def _user_fk(nullable=False, ondelete='CASCADE'):
    return sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete=ondelete), nullable=nullable, index=True)


def upgrade() -> None:
    tiers = op.create_table(
        'tiers',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_monthly', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('download_limit', sa.Integer(), nullable=True),
        sa.Column('permission_level', sa.Integer(), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(), nullable=False, unique=True, index=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tier_id', sa.Integer(), sa.ForeignKey('tiers.id'), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'admin_action_logs',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('admin_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'subscriptions',
        _id(),
        _user_fk(),
        sa.Column('tier_id', sa.Integer(), sa.ForeignKey('tiers.id'), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('payment_provider_id', sa.String(), nullable=True, unique=True),
        sa.Column('next_billing_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'courses',
        _id(),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.String(), nullable=True),
        sa.Column('minimum_tier_id', sa.Integer(), sa.ForeignKey('tiers.id'), nullable=False),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'modules',
        _id(),
        sa.Column('course_id', sa.String(length=36), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'lessons',
        _id(),
        sa.Column('module_id', sa.String(length=36), sa.ForeignKey('modules.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('video_url', sa.String(), nullable=True),
        sa.Column('storage_key', sa.String(), nullable=True),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'attachments',
        _id(),
        sa.Column('lesson_id', sa.String(length=36), sa.ForeignKey('lessons.id', ondelete='CASCADE'), nullable=True, index=True),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('file_type', sa.String(), nullable=True),
        sa.Column('file_url', sa.String(), nullable=True),
        sa.Column('minimum_tier_id', sa.Integer(), sa.ForeignKey('tiers.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'user_downloads',
        _id(),
        _user_fk(),
        sa.Column('attachment_id', sa.String(length=36), sa.ForeignKey('attachments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('downloaded_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'attachment_id', name='unique_user_attachment_download'),
    )
    op.create_table(
        'file_products',
        _id(),
        sa.Column('attachment_id', sa.String(length=36), sa.ForeignKey('attachments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'products',
        _id(),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('thumbnail_url', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'product_attachments',
        _id(),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('attachment_id', sa.String(length=36), sa.ForeignKey('attachments.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('product_id', 'attachment_id', name='unique_product_attachment'),
    )
    op.create_table(
        'file_purchases',
        _id(),
        _user_fk(),
        sa.Column('file_product_id', sa.String(length=36), sa.ForeignKey('file_products.id'), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(), nullable=False, unique=True),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=False),
        sa.Column('purchased_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'product_purchases',
        _id(),
        _user_fk(),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(), nullable=False, unique=True),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=False),
        sa.Column('purchased_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'user_progress',
        _id(),
        _user_fk(),
        sa.Column('lesson_id', sa.String(length=36), sa.ForeignKey('lessons.id', ondelete='CASCADE'), nullable=False),
        sa.Column('time_watched', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_watched_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'lesson_id', name='unique_user_lesson_progress'),
    )
    op.create_table(
        'certificates',
        _id(),
        _user_fk(),
        sa.Column('course_id', sa.String(length=36), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('certificate_url', sa.String(), nullable=True),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'course_id', name='unique_user_course_certificate'),
    )
    op.create_table(
        'notifications',
        _id(),
        _user_fk(),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'support_tickets',
        _id(),
        _user_fk(nullable=True, ondelete='SET NULL'),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(), nullable=False, server_default='open'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'support_messages',
        _id(),
        sa.Column('ticket_id', sa.String(length=36), sa.ForeignKey('support_tickets.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_from_support', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    # Default plans; signup needs at least one tier
    op.bulk_insert(tiers, [
        {'id': 1, 'name': 'Free', 'description': 'Basic courses and a few downloads per month',
         'price_monthly': 0, 'download_limit': 5, 'permission_level': 1},
        {'id': 2, 'name': 'Professor Pro', 'description': 'Every course and unlimited downloads',
         'price_monthly': 29.90, 'download_limit': None, 'permission_level': 2},
        {'id': 3, 'name': 'Premium', 'description': 'Everything in Pro plus premium materials',
         'price_monthly': 49.90, 'download_limit': None, 'permission_level': 3},
    ])


def downgrade() -> None:
    for table in (
        'support_messages', 'support_tickets', 'notifications', 'certificates', 'user_progress',
        'product_purchases', 'file_purchases', 'product_attachments', 'products', 'file_products',
        'user_downloads', 'attachments', 'lessons', 'modules', 'courses', 'subscriptions',
        'admin_action_logs', 'profiles', 'users', 'tiers',
    ):
        op.drop_table(table)
