"""create metadata, deleted-item and activity log tables

Revision ID: a1c9e5d2f310
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c9e5d2f310'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'post_meta',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('post_id', sa.Integer(), nullable=False, index=True),
        sa.Column('meta_key', sa.String(length=255), nullable=False, index=True),
        sa.Column('meta_value', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_index('ix_post_meta_post_id_meta_key', 'post_meta', ['post_id', 'meta_key'])

    op.create_table(
        'terms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=200), nullable=False, unique=True, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )

    op.create_table(
        'term_meta',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('term_id', sa.Integer(), nullable=False, index=True),
        sa.Column('meta_key', sa.String(length=255), nullable=False, index=True),
        sa.Column('meta_value', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_index('ix_term_meta_term_id_meta_key', 'term_meta', ['term_id', 'meta_key'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('catalog_visibility', sa.String(length=20), nullable=False, server_default='hidden'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=50), nullable=False, index=True),
        sa.Column('entity_type', sa.String(length=50), nullable=False, index=True),
        sa.Column('entity_id', sa.String(length=100), nullable=False, index=True),
        sa.Column('platform', sa.String(length=50), nullable=True, index=True),
        sa.Column('status_code', sa.Integer(), nullable=True, index=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, index=True),
    )


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('products')
    op.drop_index('ix_term_meta_term_id_meta_key', table_name='term_meta')
    op.drop_table('term_meta')
    op.drop_table('terms')
    op.drop_index('ix_post_meta_post_id_meta_key', table_name='post_meta')
    op.drop_table('post_meta')
