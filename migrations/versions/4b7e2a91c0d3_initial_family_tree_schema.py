"""Initial family tree schema

Revision ID: 4b7e2a91c0d3
Revises:
Create Date: 2026-10-19 09:12:44.318201

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7e2a91c0d3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Tables may already exist from db.create_all(); only create what is missing
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())

    if 'users' not in existing:
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=120), nullable=False),
            sa.Column('password_hash', sa.String(length=255), nullable=False),
            sa.Column('name_arabic', sa.String(length=150), nullable=False),
            sa.Column('name_english', sa.String(length=150), nullable=True),
            sa.Column('phone', sa.String(length=30), nullable=True),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('assigned_branch', sa.String(length=100), nullable=True),
            sa.Column('linked_member_id', sa.String(length=20), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('last_login', sa.DateTime(), nullable=True),
            sa.Column('failed_login_attempts', sa.Integer(), nullable=False),
            sa.Column('locked_until', sa.DateTime(), nullable=True),
            sa.Column('reset_token', sa.String(length=64), nullable=True),
            sa.Column('reset_token_expires', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_reset_token'), 'users', ['reset_token'], unique=True)

    if 'sessions' not in existing:
        op.create_table('sessions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('token', sa.String(length=128), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('remember_me', sa.Boolean(), nullable=False),
            sa.Column('ip_address', sa.String(length=64), nullable=True),
            sa.Column('user_agent', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_sessions_user_id'), 'sessions', ['user_id'], unique=False)
        op.create_index(op.f('ix_sessions_token'), 'sessions', ['token'], unique=True)

    if 'family_members' not in existing:
        op.create_table('family_members',
            sa.Column('id', sa.String(length=20), nullable=False),
            sa.Column('first_name', sa.String(length=100), nullable=False),
            sa.Column('father_name', sa.String(length=100), nullable=True),
            sa.Column('grandfather_name', sa.String(length=100), nullable=True),
            sa.Column('great_grandfather_name', sa.String(length=100), nullable=True),
            sa.Column('family_name', sa.String(length=100), nullable=False),
            sa.Column('father_id', sa.String(length=20), nullable=True),
            sa.Column('gender', sa.String(length=10), nullable=False),
            sa.Column('birth_year', sa.Integer(), nullable=True),
            sa.Column('death_year', sa.Integer(), nullable=True),
            sa.Column('sons_count', sa.Integer(), nullable=False),
            sa.Column('daughters_count', sa.Integer(), nullable=False),
            sa.Column('generation', sa.Integer(), nullable=False),
            sa.Column('branch', sa.String(length=100), nullable=True),
            sa.Column('full_name_ar', sa.String(length=255), nullable=True),
            sa.Column('full_name_en', sa.String(length=255), nullable=True),
            sa.Column('phone', sa.String(length=30), nullable=True),
            sa.Column('city', sa.String(length=100), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('photo_url', sa.Text(), nullable=True),
            sa.Column('biography', sa.Text(), nullable=True),
            sa.Column('occupation', sa.String(length=150), nullable=True),
            sa.Column('email', sa.String(length=120), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.Column('created_by', sa.String(length=64), nullable=True),
            sa.Column('last_modified_by', sa.String(length=64), nullable=True),
            sa.Column('version', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(['father_id'], ['family_members.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_family_members_father_id'), 'family_members', ['father_id'], unique=False)
        op.create_index(op.f('ix_family_members_generation'), 'family_members', ['generation'], unique=False)
        op.create_index(op.f('ix_family_members_branch'), 'family_members', ['branch'], unique=False)

    if 'pending_members' not in existing:
        op.create_table('pending_members',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('first_name', sa.String(length=100), nullable=False),
            sa.Column('father_name', sa.String(length=100), nullable=True),
            sa.Column('grandfather_name', sa.String(length=100), nullable=True),
            sa.Column('great_grandfather_name', sa.String(length=100), nullable=True),
            sa.Column('family_name', sa.String(length=100), nullable=False),
            sa.Column('proposed_father_id', sa.String(length=20), nullable=True),
            sa.Column('gender', sa.String(length=10), nullable=False),
            sa.Column('birth_year', sa.Integer(), nullable=True),
            sa.Column('generation', sa.Integer(), nullable=False),
            sa.Column('branch', sa.String(length=100), nullable=True),
            sa.Column('full_name_ar', sa.String(length=255), nullable=True),
            sa.Column('full_name_en', sa.String(length=255), nullable=True),
            sa.Column('phone', sa.String(length=30), nullable=True),
            sa.Column('city', sa.String(length=100), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=True),
            sa.Column('occupation', sa.String(length=150), nullable=True),
            sa.Column('email', sa.String(length=120), nullable=True),
            sa.Column('submitted_via', sa.String(length=64), nullable=True),
            sa.Column('submitted_by_id', sa.Integer(), nullable=True),
            sa.Column('submitted_at', sa.DateTime(), nullable=False),
            sa.Column('ip_address', sa.String(length=64), nullable=True),
            sa.Column('review_status', sa.String(length=20), nullable=False),
            sa.Column('reviewed_by', sa.Integer(), nullable=True),
            sa.Column('reviewed_at', sa.DateTime(), nullable=True),
            sa.Column('review_note', sa.Text(), nullable=True),
            sa.Column('approved_member_id', sa.String(length=20), nullable=True),
            sa.ForeignKeyConstraint(['submitted_by_id'], ['users.id']),
            sa.ForeignKeyConstraint(['reviewed_by'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_pending_members_branch'), 'pending_members', ['branch'], unique=False)
        op.create_index(op.f('ix_pending_members_review_status'), 'pending_members', ['review_status'], unique=False)

    if 'member_update_requests' not in existing:
        op.create_table('member_update_requests',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('member_id', sa.String(length=20), nullable=False),
            sa.Column('member_name', sa.String(length=255), nullable=True),
            sa.Column('submitted_by_id', sa.Integer(), nullable=False),
            sa.Column('submitted_by_name', sa.String(length=150), nullable=True),
            sa.Column('submitted_by_email', sa.String(length=120), nullable=True),
            sa.Column('proposed_changes', sa.Text(), nullable=False),
            sa.Column('proposed_photo_data', sa.Text(), nullable=True),
            sa.Column('message', sa.Text(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('reviewed_by_id', sa.Integer(), nullable=True),
            sa.Column('reviewed_by_name', sa.String(length=150), nullable=True),
            sa.Column('reviewed_at', sa.DateTime(), nullable=True),
            sa.Column('review_notes', sa.Text(), nullable=True),
            sa.Column('approved_fields', sa.Text(), nullable=True),
            sa.Column('ip_address', sa.String(length=64), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['submitted_by_id'], ['users.id']),
            sa.ForeignKeyConstraint(['reviewed_by_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_member_update_requests_member_id'), 'member_update_requests', ['member_id'], unique=False)
        op.create_index(op.f('ix_member_update_requests_submitted_by_id'), 'member_update_requests', ['submitted_by_id'], unique=False)
        op.create_index(op.f('ix_member_update_requests_status'), 'member_update_requests', ['status'], unique=False)

    if 'snapshots' not in existing:
        op.create_table('snapshots',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('tree_data', sa.Text(), nullable=False),
            sa.Column('member_count', sa.Integer(), nullable=False),
            sa.Column('snapshot_type', sa.String(length=20), nullable=False),
            sa.Column('created_by', sa.String(length=64), nullable=False),
            sa.Column('created_by_name', sa.String(length=150), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_snapshots_snapshot_type'), 'snapshots', ['snapshot_type'], unique=False)
        op.create_index(op.f('ix_snapshots_created_at'), 'snapshots', ['created_at'], unique=False)

    if 'backup_config' not in existing:
        op.create_table('backup_config',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('enabled', sa.Boolean(), nullable=False),
            sa.Column('interval_hours', sa.Integer(), nullable=False),
            sa.Column('max_backups', sa.Integer(), nullable=False),
            sa.Column('retention_days', sa.Integer(), nullable=False),
            sa.Column('last_backup_at', sa.DateTime(), nullable=True),
            sa.Column('last_backup_status', sa.String(length=20), nullable=True),
            sa.Column('last_backup_error', sa.Text(), nullable=True),
            sa.Column('last_backup_duration_ms', sa.Integer(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.Column('updated_by', sa.String(length=64), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )

    if 'invites' not in existing:
        op.create_table('invites',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('code', sa.String(length=64), nullable=False),
            sa.Column('email', sa.String(length=120), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('branch', sa.String(length=100), nullable=True),
            sa.Column('message', sa.Text(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('sent_by_id', sa.Integer(), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('accepted_at', sa.DateTime(), nullable=True),
            sa.Column('accepted_user_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['sent_by_id'], ['users.id']),
            sa.ForeignKeyConstraint(['accepted_user_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_invites_code'), 'invites', ['code'], unique=True)
        op.create_index(op.f('ix_invites_email'), 'invites', ['email'], unique=False)

    if 'branch_entry_links' not in existing:
        op.create_table('branch_entry_links',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('token', sa.String(length=64), nullable=False),
            sa.Column('branch_head_id', sa.String(length=20), nullable=False),
            sa.Column('branch_head_name', sa.String(length=255), nullable=True),
            sa.Column('branch', sa.String(length=100), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('use_count', sa.Integer(), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=True),
            sa.Column('created_by_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_branch_entry_links_token'), 'branch_entry_links', ['token'], unique=True)
        op.create_index(op.f('ix_branch_entry_links_branch_head_id'), 'branch_entry_links', ['branch_head_id'], unique=False)

    if 'activity_logs' not in existing:
        op.create_table('activity_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('user_name', sa.String(length=150), nullable=True),
            sa.Column('user_role', sa.String(length=20), nullable=True),
            sa.Column('action', sa.String(length=50), nullable=False),
            sa.Column('category', sa.String(length=30), nullable=False),
            sa.Column('target_type', sa.String(length=30), nullable=True),
            sa.Column('target_id', sa.String(length=64), nullable=True),
            sa.Column('target_name', sa.String(length=255), nullable=True),
            sa.Column('description', sa.Text(), nullable=False),
            sa.Column('details', sa.Text(), nullable=True),
            sa.Column('ip_address', sa.String(length=64), nullable=True),
            sa.Column('user_agent', sa.String(length=255), nullable=True),
            sa.Column('success', sa.Boolean(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_activity_logs_created_at'), 'activity_logs', ['created_at'], unique=False)
        op.create_index(op.f('ix_activity_logs_user_id'), 'activity_logs', ['user_id'], unique=False)
        op.create_index(op.f('ix_activity_logs_action'), 'activity_logs', ['action'], unique=False)
        op.create_index(op.f('ix_activity_logs_category'), 'activity_logs', ['category'], unique=False)

    if 'broadcasts' not in existing:
        op.create_table('broadcasts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title_ar', sa.String(length=255), nullable=False),
            sa.Column('title_en', sa.String(length=255), nullable=True),
            sa.Column('content_ar', sa.Text(), nullable=False),
            sa.Column('content_en', sa.Text(), nullable=True),
            sa.Column('type', sa.String(length=20), nullable=False),
            sa.Column('meeting_date', sa.DateTime(), nullable=True),
            sa.Column('meeting_location', sa.String(length=255), nullable=True),
            sa.Column('meeting_url', sa.String(length=500), nullable=True),
            sa.Column('rsvp_required', sa.Boolean(), nullable=False),
            sa.Column('rsvp_deadline', sa.DateTime(), nullable=True),
            sa.Column('target_audience', sa.String(length=20), nullable=False),
            sa.Column('target_branch', sa.String(length=100), nullable=True),
            sa.Column('target_generation', sa.Integer(), nullable=True),
            sa.Column('target_member_ids', sa.Text(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('scheduled_at', sa.DateTime(), nullable=True),
            sa.Column('sent_at', sa.DateTime(), nullable=True),
            sa.Column('total_recipients', sa.Integer(), nullable=False),
            sa.Column('sent_count', sa.Integer(), nullable=False),
            sa.Column('failed_count', sa.Integer(), nullable=False),
            sa.Column('rsvp_yes_count', sa.Integer(), nullable=False),
            sa.Column('rsvp_no_count', sa.Integer(), nullable=False),
            sa.Column('rsvp_maybe_count', sa.Integer(), nullable=False),
            sa.Column('created_by_id', sa.Integer(), nullable=False),
            sa.Column('created_by_name', sa.String(length=150), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_broadcasts_status'), 'broadcasts', ['status'], unique=False)

    if 'broadcast_recipients' not in existing:
        op.create_table('broadcast_recipients',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('broadcast_id', sa.Integer(), nullable=False),
            sa.Column('member_id', sa.String(length=20), nullable=True),
            sa.Column('member_name', sa.String(length=255), nullable=True),
            sa.Column('email', sa.String(length=120), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('sent_at', sa.DateTime(), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('rsvp_response', sa.String(length=10), nullable=True),
            sa.Column('rsvp_responded_at', sa.DateTime(), nullable=True),
            sa.Column('rsvp_note', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['broadcast_id'], ['broadcasts.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('broadcast_id', 'email', name='uq_broadcast_recipient_email')
        )
        op.create_index(op.f('ix_broadcast_recipients_broadcast_id'), 'broadcast_recipients', ['broadcast_id'], unique=False)


def downgrade():
    op.drop_table('broadcast_recipients')
    op.drop_table('broadcasts')
    op.drop_table('activity_logs')
    op.drop_table('branch_entry_links')
    op.drop_table('invites')
    op.drop_table('backup_config')
    op.drop_table('snapshots')
    op.drop_table('member_update_requests')
    op.drop_table('pending_members')
    op.drop_table('family_members')
    op.drop_table('sessions')
    op.drop_table('users')
