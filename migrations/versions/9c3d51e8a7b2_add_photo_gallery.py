"""Add photo uploads and gallery

Revision ID: 9c3d51e8a7b2
Revises: 4b7e2a91c0d3
Create Date: 2026-10-19 14:03:27.551920

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9c3d51e8a7b2'
down_revision = '4b7e2a91c0d3'
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())

    if 'pending_images' not in existing:
        op.create_table('pending_images',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('image_data', sa.Text(), nullable=False),
            sa.Column('thumbnail_data', sa.Text(), nullable=True),
            sa.Column('category', sa.String(length=20), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=True),
            sa.Column('title_ar', sa.String(length=255), nullable=True),
            sa.Column('caption', sa.Text(), nullable=True),
            sa.Column('caption_ar', sa.Text(), nullable=True),
            sa.Column('year', sa.Integer(), nullable=True),
            sa.Column('member_id', sa.String(length=20), nullable=True),
            sa.Column('member_name', sa.String(length=255), nullable=True),
            sa.Column('tagged_member_ids', sa.Text(), nullable=True),
            sa.Column('uploaded_by_id', sa.Integer(), nullable=True),
            sa.Column('uploaded_by_name', sa.String(length=150), nullable=False),
            sa.Column('uploaded_by_email', sa.String(length=120), nullable=True),
            sa.Column('uploaded_at', sa.DateTime(), nullable=False),
            sa.Column('ip_address', sa.String(length=64), nullable=True),
            sa.Column('review_status', sa.String(length=20), nullable=False),
            sa.Column('reviewed_by_id', sa.Integer(), nullable=True),
            sa.Column('reviewed_by_name', sa.String(length=150), nullable=True),
            sa.Column('reviewed_at', sa.DateTime(), nullable=True),
            sa.Column('review_notes', sa.Text(), nullable=True),
            sa.Column('approved_photo_id', sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(['uploaded_by_id'], ['users.id']),
            sa.ForeignKeyConstraint(['reviewed_by_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_pending_images_member_id'), 'pending_images', ['member_id'], unique=False)
        op.create_index(op.f('ix_pending_images_review_status'), 'pending_images', ['review_status'], unique=False)

    if 'member_photos' not in existing:
        op.create_table('member_photos',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('image_data', sa.Text(), nullable=False),
            sa.Column('thumbnail_data', sa.Text(), nullable=True),
            sa.Column('category', sa.String(length=20), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=True),
            sa.Column('title_ar', sa.String(length=255), nullable=True),
            sa.Column('caption', sa.Text(), nullable=True),
            sa.Column('caption_ar', sa.Text(), nullable=True),
            sa.Column('year', sa.Integer(), nullable=True),
            sa.Column('member_id', sa.String(length=20), nullable=True),
            sa.Column('tagged_member_ids', sa.Text(), nullable=True),
            sa.Column('is_family_album', sa.Boolean(), nullable=False),
            sa.Column('is_profile_photo', sa.Boolean(), nullable=False),
            sa.Column('is_public', sa.Boolean(), nullable=False),
            sa.Column('display_order', sa.Integer(), nullable=False),
            sa.Column('uploaded_by_id', sa.Integer(), nullable=True),
            sa.Column('uploaded_by_name', sa.String(length=150), nullable=False),
            sa.Column('original_pending_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['uploaded_by_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_member_photos_category'), 'member_photos', ['category'], unique=False)
        op.create_index(op.f('ix_member_photos_member_id'), 'member_photos', ['member_id'], unique=False)
        op.create_index(op.f('ix_member_photos_year'), 'member_photos', ['year'], unique=False)


def downgrade():
    op.drop_table('member_photos')
    op.drop_table('pending_images')
