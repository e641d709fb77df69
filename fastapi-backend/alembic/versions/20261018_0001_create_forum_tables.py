"""
Create profiles, complaints, votes and complaint_replies

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 10:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = '20261018_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('registration_number', sa.String(), nullable=False, unique=True),
        sa.Column('hostel', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='student'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_profiles_registration_number', 'profiles', ['registration_number'])
    op.create_index('ix_profiles_email', 'profiles', ['email'])

    op.create_table(
        'complaints',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('is_anonymous', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('upvotes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('downvotes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='open'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('open', 'in_progress', 'resolved')", name='ck_complaints_status'),
    )
    op.create_index('ix_complaints_user_id', 'complaints', ['user_id'])
    op.create_index('ix_complaints_category', 'complaints', ['category'])
    op.create_index('ix_complaints_created_at', 'complaints', ['created_at'])

    op.create_table(
        'votes',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('complaint_id', sa.String(), sa.ForeignKey('complaints.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vote_type', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        # One vote per (user, complaint); racing inserts fail here.
        sa.UniqueConstraint('user_id', 'complaint_id', name='uq_votes_user_complaint'),
        sa.CheckConstraint("vote_type IN ('up', 'down')", name='ck_votes_vote_type'),
    )
    op.create_index('ix_votes_user_id', 'votes', ['user_id'])
    op.create_index('ix_votes_complaint_id', 'votes', ['complaint_id'])

    op.create_table(
        'complaint_replies',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('complaint_id', sa.String(), sa.ForeignKey('complaints.id', ondelete='CASCADE'), nullable=False),
        sa.Column('admin_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('reply_text', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_complaint_replies_complaint_id', 'complaint_replies', ['complaint_id'])


def downgrade():
    op.drop_table('complaint_replies')
    op.drop_table('votes')
    op.drop_table('complaints')
    op.drop_table('profiles')
