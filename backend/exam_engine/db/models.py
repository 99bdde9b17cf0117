"""SQLAlchemy ORM models for the exam engine.

Tables
------
- users        – platform profiles mirrored from the hosted auth provider
- exams        – answer-key header: duration, passing score, timer mode
- questions    – MCQ / TRUE_FALSE questions with correct answer and points
- submissions  – one row per exam attempt (ONGOING → COMPLETED)
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_engine.db.session import Base


# ── helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


TRUE_FALSE_OPTIONS = ["صحيح", "خطأ"]


# ── Enums (stored as VARCHAR via SQLAlchemy Enum) ─────────────────────────────


class RoleEnum(str, enum.Enum):
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class QuestionTypeEnum(str, enum.Enum):
    MCQ = "MCQ"
    TRUE_FALSE = "TRUE_FALSE"


class TimerModeEnum(str, enum.Enum):
    NONE = "NONE"
    EXAM_TOTAL = "EXAM_TOTAL"
    PER_QUESTION = "PER_QUESTION"


class SubmissionStatusEnum(str, enum.Enum):
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


class SubmissionOutcomeEnum(str, enum.Enum):
    """Why a submission was closed."""

    SUBMITTED = "SUBMITTED"
    EXPIRED = "EXPIRED"


# ── Users ─────────────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    auth_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(
        Enum(RoleEnum, name="role_enum"), default=RoleEnum.STUDENT
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    submissions: Mapped[list["Submission"]] = relationship(back_populates="user")


# ── Exams ─────────────────────────────────────────────────────────────────────


class Exam(Base):
    __tablename__ = "exams"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    title: Mapped[str] = mapped_column(String(500))
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30)
    passing_score: Mapped[int] = mapped_column(Integer, default=50)
    timer_mode: Mapped[TimerModeEnum] = mapped_column(
        Enum(TimerModeEnum, name="timer_mode_enum"), default=TimerModeEnum.EXAM_TOTAL
    )
    question_time_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    questions: Mapped[list["Question"]] = relationship(
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    submissions: Mapped[list["Submission"]] = relationship(
        back_populates="exam", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_exam_duration_positive"),
        CheckConstraint(
            "passing_score BETWEEN 0 AND 100", name="ck_exam_passing_score_range"
        ),
    )


# ── Questions ─────────────────────────────────────────────────────────────────


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    exam_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), index=True
    )
    text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[QuestionTypeEnum] = mapped_column(
        Enum(QuestionTypeEnum, name="question_type_enum"), default=QuestionTypeEnum.MCQ
    )
    options: Mapped[list[str]] = mapped_column(JSON, default=list)
    correct_answer: Mapped[str] = mapped_column(Text)
    points: Mapped[int] = mapped_column(Integer, default=10)
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    exam: Mapped["Exam"] = relationship(back_populates="questions")

    __table_args__ = (CheckConstraint("points > 0", name="ck_question_points_positive"),)


# ── Submissions ───────────────────────────────────────────────────────────────


class Submission(Base):
    """One learner's attempt at one exam."""

    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE")
    )
    exam_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[SubmissionStatusEnum] = mapped_column(
        Enum(SubmissionStatusEnum, name="submission_status_enum"),
        default=SubmissionStatusEnum.ONGOING,
    )
    outcome: Mapped[SubmissionOutcomeEnum | None] = mapped_column(
        Enum(SubmissionOutcomeEnum, name="submission_outcome_enum"), nullable=True
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)  # percentage
    points_earned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    answers: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    details: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    user: Mapped["User"] = relationship(back_populates="submissions")
    exam: Mapped["Exam"] = relationship(back_populates="submissions")

    __table_args__ = (
        # At most one live attempt per (user, exam).
        Index(
            "uq_submission_one_ongoing",
            "user_id",
            "exam_id",
            unique=True,
            sqlite_where=text("status = 'ONGOING'"),
            postgresql_where=text("status = 'ONGOING'"),
        ),
        Index("ix_submission_user_exam_status", "user_id", "exam_id", "status"),
    )
