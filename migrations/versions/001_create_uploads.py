"""Create uploads table

Revision ID: 001_create_uploads
Revises:
Create Date: 2026-10-19

One row per distinct content hash. The unique sha1 index is what makes
concurrent uploads of identical bytes converge on a single record.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_create_uploads'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the uploads table and its lookup indexes."""
    op.create_table(
        'uploads',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('original_filename', sa.String(255), nullable=False),
        sa.Column('filesize', sa.Integer(), nullable=False),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('sha1', sa.String(40), nullable=False),
        sa.Column('url', sa.String(512), nullable=False),
        sa.Column('extension', sa.String(10), nullable=True),
        sa.Column('origin', sa.Text(), nullable=True),
        sa.Column('upload_type', sa.String(50), nullable=True),
        sa.Column('secure', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('access_control_post_id', sa.Integer(), nullable=True),
        sa.Column('retain_hours', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_index('ix_uploads_sha1', 'uploads', ['sha1'], unique=True)
    op.create_index('ix_uploads_id_url', 'uploads', ['id', 'url'], unique=False)
    op.create_index(
        'ix_uploads_access_control_post_id', 'uploads', ['access_control_post_id'], unique=False
    )


def downgrade() -> None:
    """Drop the uploads table."""
    op.drop_index('ix_uploads_access_control_post_id', table_name='uploads')
    op.drop_index('ix_uploads_id_url', table_name='uploads')
    op.drop_index('ix_uploads_sha1', table_name='uploads')
    op.drop_table('uploads')
