"""create tutoring tables

Revision ID: a1c4e9f2b7d3
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c4e9f2b7d3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('users',
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('role', sa.String(length=20), nullable=False, server_default='tutee'),
    sa.Column('access_token', sa.String(length=255), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('user_id'),
    sa.UniqueConstraint('email'),
    sa.UniqueConstraint('access_token')
    )
    op.create_index('idx_users_role', 'users', ['role'], unique=False)

    op.create_table('profile',
    sa.Column('profile_id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('subject', sa.String(length=100), nullable=True),
    sa.Column('specialization', sa.String(length=200), nullable=True),
    sa.Column('college', sa.String(length=200), nullable=True),
    sa.Column('program', sa.String(length=200), nullable=True),
    sa.Column('year_level', sa.Integer(), nullable=True),
    sa.Column('online_link', sa.String(length=500), nullable=True),
    sa.Column('file_link', sa.String(length=500), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('profile_id'),
    sa.UniqueConstraint('user_id')
    )

    op.create_table('schedule',
    sa.Column('schedule_id', sa.UUID(), nullable=False),
    sa.Column('tutor_id', sa.UUID(), nullable=False),
    sa.Column('day', sa.String(length=10), nullable=False),
    sa.Column('start_time', sa.Time(), nullable=False),
    sa.Column('end_time', sa.Time(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['tutor_id'], ['users.user_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('schedule_id')
    )
    op.create_index('idx_schedule_tutor_day', 'schedule', ['tutor_id', 'day'], unique=False)

    op.create_table('appointment',
    sa.Column('appointment_id', sa.UUID(), nullable=False),
    sa.Column('tutor_id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('start_time', sa.Time(), nullable=False),
    sa.Column('end_time', sa.Time(), nullable=False),
    sa.Column('subject', sa.String(length=100), nullable=False),
    sa.Column('topic', sa.String(length=200), nullable=True),
    sa.Column('mode_of_session', sa.String(length=20), nullable=False),
    sa.Column('session_location', sa.String(length=300), nullable=True),
    sa.Column('number_of_tutees', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
    sa.Column('tutor_decline_reason', sa.Text(), nullable=True),
    sa.Column('tutee_decline_reason', sa.Text(), nullable=True),
    sa.Column('resource_link', sa.String(length=500), nullable=True),
    sa.Column('resource_note', sa.Text(), nullable=True),
    sa.Column('online_link', sa.String(length=500), nullable=True),
    sa.Column('file_link', sa.String(length=500), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['tutor_id'], ['users.user_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('appointment_id'),
    sa.CheckConstraint(
        "status IN ('pending', 'confirmed', 'started', 'awaiting_feedback', 'completed', 'declined', 'cancelled')",
        name='ck_appointment_status'
    )
    )
    op.create_index('idx_appointment_tutor_date', 'appointment', ['tutor_id', 'date', 'start_time'], unique=False)
    op.create_index('idx_appointment_tutee_date', 'appointment', ['user_id', 'date', 'start_time'], unique=False)
    op.create_index('idx_appointment_status', 'appointment', ['status'], unique=False)

    op.create_table('evaluation',
    sa.Column('evaluation_id', sa.UUID(), nullable=False),
    sa.Column('appointment_id', sa.UUID(), nullable=False),
    sa.Column('tutor_id', sa.UUID(), nullable=True),
    sa.Column('user_id', sa.UUID(), nullable=True),
    sa.Column('pre_test_score', sa.Float(), nullable=True),
    sa.Column('post_test_score', sa.Float(), nullable=True),
    sa.Column('pre_test_total', sa.Float(), nullable=True),
    sa.Column('post_test_total', sa.Float(), nullable=True),
    sa.Column('tutor_notes', sa.Text(), nullable=True),
    sa.Column('presentation_clarity', sa.String(length=3), nullable=True),
    sa.Column('drills_sufficiency', sa.String(length=3), nullable=True),
    sa.Column('patience_enthusiasm', sa.String(length=3), nullable=True),
    sa.Column('study_skills_development', sa.String(length=3), nullable=True),
    sa.Column('positive_impact', sa.String(length=3), nullable=True),
    sa.Column('tutor_comment', sa.Text(), nullable=True),
    sa.Column('lav_environment', sa.String(length=3), nullable=True),
    sa.Column('lav_scheduling', sa.String(length=3), nullable=True),
    sa.Column('lav_support', sa.String(length=3), nullable=True),
    sa.Column('lav_book_again', sa.String(length=3), nullable=True),
    sa.Column('lav_value', sa.String(length=3), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['appointment_id'], ['appointment.appointment_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('evaluation_id')
    )
    op.create_index('idx_evaluation_appointment', 'evaluation', ['appointment_id'], unique=False)
    op.create_index('idx_evaluation_tutor', 'evaluation', ['tutor_id'], unique=False)

    op.create_table('notification',
    sa.Column('notification_id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('type', sa.String(length=40), nullable=False),
    sa.Column('appointment_id', sa.UUID(), nullable=True),
    sa.Column('notification_content', sa.Text(), nullable=False),
    sa.Column('status', sa.String(length=10), nullable=False, server_default='unread'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['appointment_id'], ['appointment.appointment_id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('notification_id')
    )
    op.create_index('idx_notification_user_status', 'notification', ['user_id', 'status'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_notification_user_status', table_name='notification')
    op.drop_table('notification')
    op.drop_index('idx_evaluation_tutor', table_name='evaluation')
    op.drop_index('idx_evaluation_appointment', table_name='evaluation')
    op.drop_table('evaluation')
    op.drop_index('idx_appointment_status', table_name='appointment')
    op.drop_index('idx_appointment_tutee_date', table_name='appointment')
    op.drop_index('idx_appointment_tutor_date', table_name='appointment')
    op.drop_table('appointment')
    op.drop_index('idx_schedule_tutor_day', table_name='schedule')
    op.drop_table('schedule')
    op.drop_table('profile')
    op.drop_index('idx_users_role', table_name='users')
    op.drop_table('users')
