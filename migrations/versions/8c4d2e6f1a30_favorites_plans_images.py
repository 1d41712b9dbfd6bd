"""favorites_plans_images

Revision ID: 8c4d2e6f1a30
Revises: 3f1c2a9d7e10
Create Date: 2026-10-18 16:40:02.517904

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c4d2e6f1a30'
down_revision: Union[str, None] = '3f1c2a9d7e10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('subscriptions', sa.Column('expired_at', sa.DateTime(), nullable=True))

    op.create_table(
        'favorites',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('course_id', sa.String(length=36), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'course_id', name='unique_user_course_favorite'),
    )
    op.create_table(
        'lesson_plans',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('course_id', sa.String(length=36), sa.ForeignKey('courses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'file_product_images',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('file_product_id', sa.String(length=36), sa.ForeignKey('file_products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('image_url', sa.String(), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('file_product_images')
    op.drop_table('lesson_plans')
    op.drop_table('favorites')
    op.drop_column('subscriptions', 'expired_at')
