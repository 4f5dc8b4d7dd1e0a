"""Create category table.

Revision ID: a3f1c9e2d7b4
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a3f1c9e2d7b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'category',
        sa.Column('id', sa.String(length=24), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('image_path', sa.String(length=500), nullable=True),
        sa.Column('image_naming_version', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_category_image_path', 'category', ['image_path'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_category_image_path', table_name='category')
    op.drop_table('category')
