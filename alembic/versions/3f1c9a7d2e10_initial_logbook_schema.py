"""initial_logbook_schema

Revision ID: 3f1c9a7d2e10
Revises:
Create Date: 2026-10-19 09:12:44.503118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('student', 'mentor', 'advisor', 'admin', name='userrole')
log_status = sa.Enum('draft', 'submitted', 'approved', 'needs_revision', 'validated', name='logstatus')
xp_reason = sa.Enum(
    'daily_log_submit', 'photo_attached', 'self_assessment', 'log_approved', 'poll_completed',
    'quiz_perfect_score', name='xpreason'
)
notification_type = sa.Enum(
    'log_approved', 'log_revision_requested', 'new_feedback', 'badge_earned', 'level_up',
    'general', name='notificationtype'
)
poll_type = sa.Enum('quiz', 'survey', 'feedback', name='polltype')
poll_target_role = sa.Enum('student', 'mentor', 'all', name='polltargetrole')
question_type = sa.Enum('single_choice', 'multiple_choice', 'text', 'rating', name='questiontype')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('status', user_role, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_status', 'users', ['status'])

    op.create_table(
        'student_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mentor_id', sa.Integer(), nullable=True),
        sa.Column('advisor_id', sa.Integer(), nullable=True),
        sa.Column('company_name', sa.String(), nullable=True),
        sa.Column('internship_start_date', sa.Date(), nullable=True),
        sa.Column('internship_end_date', sa.Date(), nullable=True),
        sa.Column('total_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity_date', sa.Date(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['mentor_id'], ['users.id']),
        sa.ForeignKeyConstraint(['advisor_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_student_profiles_mentor_id', 'student_profiles', ['mentor_id'])
    op.create_index('ix_student_profiles_advisor_id', 'student_profiles', ['advisor_id'])
    op.create_index('idx_student_profiles_total_xp', 'student_profiles', ['total_xp'])

    op.create_table(
        'daily_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('activities_performed', sa.Text(), nullable=False),
        sa.Column('skills_learned', sa.Text(), nullable=False),
        sa.Column('challenges_faced', sa.Text(), nullable=False),
        sa.Column('hours_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', log_status, nullable=False, server_default='draft'),
        sa.Column('advisor_notes', sa.Text(), nullable=True),
        sa.Column('validated_at', sa.DateTime(), nullable=True),
        sa.Column('validated_by', sa.Integer(), nullable=True),
        sa.Column('xp_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.ForeignKeyConstraint(['validated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'date', name='unique_student_log_date')
    )
    op.create_index('ix_daily_logs_id', 'daily_logs', ['id'])
    op.create_index('ix_daily_logs_student_id', 'daily_logs', ['student_id'])
    op.create_index('ix_daily_logs_status', 'daily_logs', ['status'])

    op.create_table(
        'log_photos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('uri', sa.String(), nullable=False),
        sa.Column('caption', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['log_id'], ['daily_logs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_log_photos_log_id', 'log_photos', ['log_id'])

    op.create_table(
        'log_documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('uri', sa.String(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('file_type', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['log_id'], ['daily_logs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_log_documents_log_id', 'log_documents', ['log_id'])

    op.create_table(
        'self_assessments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('competency_ratings', sa.JSON(), nullable=False),
        sa.Column('reflection_notes', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['log_id'], ['daily_logs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('log_id')
    )

    op.create_table(
        'mentor_feedbacks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('mentor_id', sa.Integer(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=False),
        sa.Column('competency_ratings', sa.JSON(), nullable=False),
        sa.Column('is_approved', sa.Boolean(), nullable=False),
        sa.Column('revision_required', sa.Boolean(), nullable=False),
        sa.Column('revision_notes', sa.Text(), nullable=True),
        sa.Column('areas_of_excellence', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['log_id'], ['daily_logs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['mentor_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_mentor_feedbacks_log_id', 'mentor_feedbacks', ['log_id'])
    op.create_index('ix_mentor_feedbacks_mentor_id', 'mentor_feedbacks', ['mentor_id'])

    op.create_table(
        'revision_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('previous_content', sa.Text(), nullable=False),
        sa.Column('new_content', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('revised_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['log_id'], ['daily_logs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_revision_history_log_id', 'revision_history', ['log_id'])

    op.create_table(
        'xp_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('reason', xp_reason, nullable=False),
        sa.Column('log_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.ForeignKeyConstraint(['log_id'], ['daily_logs.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_xp_transactions_student_id', 'xp_transactions', ['student_id'])

    op.create_table(
        'earned_badges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('badge_key', sa.String(length=50), nullable=False),
        sa.Column('earned_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'badge_key', name='unique_student_badge')
    )
    op.create_index('ix_earned_badges_student_id', 'earned_badges', ['student_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('idx_notifications_user_unread', 'notifications', ['user_id', 'is_read'])

    op.create_table(
        'polls',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('poll_type', poll_type, nullable=False),
        sa.Column('target_role', poll_target_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('starts_at', sa.DateTime(), nullable=False),
        sa.Column('ends_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_polls_creator_id', 'polls', ['creator_id'])

    op.create_table(
        'poll_questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('poll_id', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('question_type', question_type, nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_option_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['poll_id'], ['polls.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_poll_questions_poll_id', 'poll_questions', ['poll_id'])

    op.create_table(
        'poll_options',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('option_text', sa.String(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['question_id'], ['poll_questions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_poll_options_question_id', 'poll_options', ['question_id'])

    op.create_table(
        'poll_responses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('poll_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['poll_id'], ['polls.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('poll_id', 'user_id', name='unique_poll_user_response')
    )
    op.create_index('ix_poll_responses_poll_id', 'poll_responses', ['poll_id'])
    op.create_index('ix_poll_responses_user_id', 'poll_responses', ['user_id'])


def downgrade() -> None:
    for table in (
        'poll_responses', 'poll_options', 'poll_questions', 'polls', 'notifications', 'earned_badges',
        'xp_transactions', 'revision_history', 'mentor_feedbacks', 'self_assessments', 'log_documents',
        'log_photos', 'daily_logs', 'student_profiles', 'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        question_type, poll_target_role, poll_type, notification_type, xp_reason, log_status, user_role
    ):
        enum_type.drop(bind, checkfirst=True)
