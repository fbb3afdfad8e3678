"""Add recruitment review tables

Revision ID: 001_recruitment_review_tables
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_recruitment_review_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create users, applications and the review engine tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='member'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'applications',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('cycle_id', sa.String(length=64), nullable=False),
        sa.Column('track', sa.String(length=50), nullable=False),
        sa.Column('stage', sa.String(length=50), nullable=False, server_default='not_started'),
        sa.Column('applicant_name', sa.String(length=255), nullable=True),
        sa.Column('applicant_email', sa.String(length=255), nullable=True),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_applications_cycle_id', 'applications', ['cycle_id'])
    op.create_index('ix_applications_stage', 'applications', ['stage'])
    op.create_index('ix_applications_applicant_email', 'applications', ['applicant_email'])
    op.create_index('idx_applications_cycle_stage', 'applications', ['cycle_id', 'stage'])
    op.create_index('idx_applications_cycle_track', 'applications', ['cycle_id', 'track'])

    op.create_table(
        'phase_configs',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('cycle_id', sa.String(length=64), nullable=False),
        sa.Column('phase', sa.String(length=50), nullable=False),
        sa.Column('track', sa.String(length=50), nullable=True),
        sa.Column('scoring_categories', sa.JSON(), nullable=False),
        sa.Column('min_reviewers_required', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('use_z_score_normalization', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('referral_weights', sa.JSON(), nullable=True),
        sa.Column('interview_questions', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='not_started'),
        sa.Column('cutoff_applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cutoff_applied_by', sa.String(length=255), nullable=True),
        sa.Column('cutoff_criteria', sa.JSON(), nullable=True),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finalized_by', sa.String(length=255), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unlocked_by', sa.String(length=255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cycle_id', 'phase', 'track', name='uq_phase_configs_cycle_phase_track'),
    )
    op.create_index('ix_phase_configs_cycle_id', 'phase_configs', ['cycle_id'])
    op.create_index(
        'uq_phase_configs_default',
        'phase_configs',
        ['cycle_id', 'phase'],
        unique=True,
        postgresql_where=sa.text('track IS NULL'),
    )

    op.create_table(
        'application_reviews',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('application_id', sa.BigInteger(), nullable=False),
        sa.Column('cycle_id', sa.String(length=64), nullable=False),
        sa.Column('phase', sa.String(length=50), nullable=False),
        sa.Column('track', sa.String(length=50), nullable=True),
        sa.Column('reviewer_email', sa.String(length=255), nullable=False),
        sa.Column('reviewer_name', sa.String(length=255), nullable=True),
        sa.Column('scores', sa.JSON(), nullable=False),
        sa.Column('referral_signal', sa.String(length=50), nullable=False, server_default='neutral'),
        sa.Column('recommendation', sa.String(length=50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('question_notes', sa.JSON(), nullable=True),
        sa.Column('audio_url', sa.String(length=1024), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.UniqueConstraint(
            'application_id', 'phase', 'reviewer_email', name='uq_reviews_application_phase_reviewer'
        ),
    )
    op.create_index('ix_application_reviews_reviewer_email', 'application_reviews', ['reviewer_email'])
    op.create_index('idx_reviews_cycle_phase', 'application_reviews', ['cycle_id', 'phase'])

    op.create_table(
        'phase_decisions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('cycle_id', sa.String(length=64), nullable=False),
        sa.Column('phase', sa.String(length=50), nullable=False),
        sa.Column('application_id', sa.BigInteger(), nullable=False),
        sa.Column('track', sa.String(length=50), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('decision', sa.String(length=50), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('previous_stage', sa.String(length=50), nullable=False),
        sa.Column('new_stage', sa.String(length=50), nullable=False),
        sa.Column('performed_by', sa.String(length=255), nullable=False),
        sa.Column('performed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.UniqueConstraint(
            'cycle_id', 'phase', 'application_id', name='uq_decisions_cycle_phase_application'
        ),
    )

    op.create_table(
        'phase_ranking_snapshots',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('cycle_id', sa.String(length=64), nullable=False),
        sa.Column('phase', sa.String(length=50), nullable=False),
        sa.Column('track', sa.String(length=50), nullable=True),
        sa.Column('rankings', sa.JSON(), nullable=False),
        sa.Column('cutoff_criteria', sa.JSON(), nullable=False),
        sa.Column('total_applicants', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('advanced_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rejected_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_snapshots_cycle_phase', 'phase_ranking_snapshots', ['cycle_id', 'phase'])

    op.create_table(
        'email_logs',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('cycle_id', sa.String(length=64), nullable=False),
        sa.Column('application_id', sa.BigInteger(), nullable=False),
        sa.Column('recipient_email', sa.String(length=255), nullable=True),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('template_id', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sent_by', sa.String(length=255), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_logs_application_id', 'email_logs', ['application_id'])
    op.create_index('idx_email_logs_cycle_template', 'email_logs', ['cycle_id', 'template_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('actor_email', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('target_type', sa.String(length=50), nullable=False),
        sa.Column('target_id', sa.String(length=128), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_actor_email', 'audit_logs', ['actor_email'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_target_type', 'audit_logs', ['target_type'])
    op.create_index('ix_audit_logs_target_id', 'audit_logs', ['target_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    """Drop the review engine tables."""
    op.drop_table('audit_logs')
    op.drop_index('idx_email_logs_cycle_template', table_name='email_logs')
    op.drop_index('ix_email_logs_application_id', table_name='email_logs')
    op.drop_table('email_logs')
    op.drop_index('idx_snapshots_cycle_phase', table_name='phase_ranking_snapshots')
    op.drop_table('phase_ranking_snapshots')
    op.drop_table('phase_decisions')
    op.drop_index('idx_reviews_cycle_phase', table_name='application_reviews')
    op.drop_index('ix_application_reviews_reviewer_email', table_name='application_reviews')
    op.drop_table('application_reviews')
    op.drop_index('uq_phase_configs_default', table_name='phase_configs')
    op.drop_index('ix_phase_configs_cycle_id', table_name='phase_configs')
    op.drop_table('phase_configs')
    op.drop_table('applications')
    op.drop_table('users')
