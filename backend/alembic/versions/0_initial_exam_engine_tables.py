"""Initial migration - exam engine tables

Revision ID: 0_initial
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

role_enum = sa.Enum('STUDENT', 'ADMIN', name='role_enum')
question_type_enum = sa.Enum('MCQ', 'TRUE_FALSE', name='question_type_enum')
timer_mode_enum = sa.Enum('NONE', 'EXAM_TOTAL', 'PER_QUESTION', name='timer_mode_enum')
submission_status_enum = sa.Enum('ONGOING', 'COMPLETED', name='submission_status_enum')
submission_outcome_enum = sa.Enum('SUBMITTED', 'EXPIRED', name='submission_outcome_enum')


def upgrade() -> None:
    # ── users table ───────────────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('auth_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', role_enum, nullable=False, server_default='STUDENT'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_auth_id', 'users', ['auth_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ── exams table ───────────────────────────────────────────────────
    op.create_table(
        'exams',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('passing_score', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('timer_mode', timer_mode_enum, nullable=False, server_default='EXAM_TOTAL'),
        sa.Column('question_time_seconds', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('duration_minutes > 0', name='ck_exam_duration_positive'),
        sa.CheckConstraint('passing_score BETWEEN 0 AND 100', name='ck_exam_passing_score_range'),
    )

    # ── questions table ───────────────────────────────────────────────
    op.create_table(
        'questions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('exam_id', sa.UUID(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('question_type', question_type_enum, nullable=False, server_default='MCQ'),
        sa.Column('options', sa.JSON(), nullable=False),
        sa.Column('correct_answer', sa.Text(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('points > 0', name='ck_question_points_positive'),
    )
    op.create_index('ix_questions_exam_id', 'questions', ['exam_id'])

    # ── submissions table ─────────────────────────────────────────────
    op.create_table(
        'submissions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('exam_id', sa.UUID(), nullable=False),
        sa.Column('status', submission_status_enum, nullable=False, server_default='ONGOING'),
        sa.Column('outcome', submission_outcome_enum, nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('points_earned', sa.Integer(), nullable=True),
        sa.Column('total_points', sa.Integer(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_submissions_exam_id', 'submissions', ['exam_id'])
    op.create_index(
        'ix_submission_user_exam_status', 'submissions', ['user_id', 'exam_id', 'status']
    )
    # One live attempt per (user, exam); concurrent starts collide here.
    op.create_index(
        'uq_submission_one_ongoing',
        'submissions',
        ['user_id', 'exam_id'],
        unique=True,
        postgresql_where=sa.text("status = 'ONGOING'"),
    )


def downgrade() -> None:
    op.drop_index('uq_submission_one_ongoing', table_name='submissions')
    op.drop_index('ix_submission_user_exam_status', table_name='submissions')
    op.drop_index('ix_submissions_exam_id', table_name='submissions')
    op.drop_table('submissions')
    op.drop_index('ix_questions_exam_id', table_name='questions')
    op.drop_table('questions')
    op.drop_table('exams')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_auth_id', table_name='users')
    op.drop_table('users')

    for enum_type in (
        submission_outcome_enum,
        submission_status_enum,
        timer_mode_enum,
        question_type_enum,
        role_enum,
    ):
        enum_type.drop(op.get_bind(), checkfirst=True)
