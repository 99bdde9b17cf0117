"""Storage interfaces consumed by the exam services.

``AnswerKeyStore`` reads exams and questions; ``SessionStore`` is the narrow
CRUD surface over submissions. Services depend on the protocols; the
SQLAlchemy implementations below are what the API wires in.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from exam_engine.core.errors import (
    STORAGE_UNAVAILABLE_MESSAGE,
    PersistenceFailure,
    WriteConflict,
)
from exam_engine.db.models import (
    Exam,
    Question,
    Submission,
    SubmissionStatusEnum,
    User,
)

logger = logging.getLogger(__name__)


# ── Interfaces ────────────────────────────────────────────────────────────────


class AnswerKeyStore(Protocol):
    def reading(self) -> Any: ...

    def get_exam(self, exam_id: uuid.UUID) -> Exam | None: ...

    def get_questions(self, exam_id: uuid.UUID) -> list[Question]: ...

    def list_exams(self) -> list[Exam]: ...

    def get_user(self, user_id: uuid.UUID) -> User | None: ...


class SessionStore(Protocol):
    def transaction(self) -> Any: ...

    def reading(self) -> Any: ...

    def lock_owner(self, user_id: uuid.UUID) -> None: ...

    def find_ongoing(self, user_id: uuid.UUID, exam_id: uuid.UUID) -> Submission | None: ...

    def find_latest(self, user_id: uuid.UUID, exam_id: uuid.UUID) -> Submission | None: ...

    def get(self, submission_id: uuid.UUID) -> Submission | None: ...

    def insert(self, submission: Submission) -> Submission: ...

    def complete_if_ongoing(self, submission_id: uuid.UUID, **values: Any) -> bool: ...

    def update_answers_if_ongoing(
        self, submission_id: uuid.UUID, answers: dict[str, Any]
    ) -> bool: ...

    def list_for_exam(self, exam_id: uuid.UUID) -> list[Submission]: ...

    def list_completed_for_exam(self, exam_id: uuid.UUID) -> list[Submission]: ...


# ── SQLAlchemy implementations ────────────────────────────────────────────────


class _SqlStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit on success; roll back everything on any failure.

        ``IntegrityError`` surfaces as ``WriteConflict`` and every other
        database error as ``PersistenceFailure``.
        """
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Write conflict: %s", exc.orig)
            raise WriteConflict() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Storage write failed")
            raise PersistenceFailure() from exc
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def reading(self) -> Iterator[None]:
        """Surface a failed read as ``PersistenceFailure``.

        The session is rolled back so the next statement does not run inside
        an aborted transaction.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Storage read failed")
            raise PersistenceFailure(STORAGE_UNAVAILABLE_MESSAGE) from exc


class SqlAnswerKeyStore(_SqlStore):
    def get_exam(self, exam_id: uuid.UUID) -> Exam | None:
        return self.db.get(Exam, exam_id)

    def get_question(self, question_id: uuid.UUID) -> Question | None:
        return self.db.get(Question, question_id)

    def get_questions(self, exam_id: uuid.UUID) -> list[Question]:
        return (
            self.db.query(Question)
            .filter(Question.exam_id == exam_id)
            .order_by(Question.position, Question.created_at)
            .all()
        )

    def list_exams(self) -> list[Exam]:
        return self.db.query(Exam).order_by(Exam.created_at.desc()).all()

    def get_user(self, user_id: uuid.UUID) -> User | None:
        return self.db.get(User, user_id)

    def next_position(self, exam_id: uuid.UUID) -> int:
        current = (
            self.db.query(func.max(Question.position))
            .filter(Question.exam_id == exam_id)
            .scalar()
        )
        return 0 if current is None else current + 1

    def add(self, obj: Exam | Question) -> None:
        self.db.add(obj)
        self.db.flush()

    def delete(self, obj: Question) -> None:
        self.db.delete(obj)
        self.db.flush()


class SqlSessionStore(_SqlStore):
    def lock_owner(self, user_id: uuid.UUID) -> None:
        """Hold the user's row lock until the surrounding transaction ends.

        Serializes writers for one user on PostgreSQL; SQLite has no row
        locks and ignores ``FOR UPDATE``.
        """
        self.db.query(User).filter(User.id == user_id).with_for_update().one_or_none()

    def find_ongoing(self, user_id: uuid.UUID, exam_id: uuid.UUID) -> Submission | None:
        return (
            self.db.query(Submission)
            .filter(
                Submission.user_id == user_id,
                Submission.exam_id == exam_id,
                Submission.status == SubmissionStatusEnum.ONGOING,
            )
            .order_by(Submission.started_at.desc())
            .first()
        )

    def find_latest(self, user_id: uuid.UUID, exam_id: uuid.UUID) -> Submission | None:
        return (
            self.db.query(Submission)
            .filter(Submission.user_id == user_id, Submission.exam_id == exam_id)
            .order_by(Submission.started_at.desc())
            .first()
        )

    def get(self, submission_id: uuid.UUID) -> Submission | None:
        return self.db.get(Submission, submission_id)

    def insert(self, submission: Submission) -> Submission:
        self.db.add(submission)
        self.db.flush()
        return submission

    def complete_if_ongoing(self, submission_id: uuid.UUID, **values: Any) -> bool:
        """Close a submission only if it is still ONGOING.

        Returns False when another writer already completed it.
        """
        values["status"] = SubmissionStatusEnum.COMPLETED
        updated = (
            self.db.query(Submission)
            .filter(
                Submission.id == submission_id,
                Submission.status == SubmissionStatusEnum.ONGOING,
            )
            .update(values, synchronize_session=False)
        )
        return updated == 1

    def update_answers_if_ongoing(
        self, submission_id: uuid.UUID, answers: dict[str, Any]
    ) -> bool:
        updated = (
            self.db.query(Submission)
            .filter(
                Submission.id == submission_id,
                Submission.status == SubmissionStatusEnum.ONGOING,
            )
            .update({"answers": answers}, synchronize_session=False)
        )
        return updated == 1

    def list_for_exam(self, exam_id: uuid.UUID) -> list[Submission]:
        return (
            self.db.query(Submission)
            .filter(Submission.exam_id == exam_id)
            .order_by(Submission.started_at)
            .all()
        )

    def list_completed_for_exam(self, exam_id: uuid.UUID) -> list[Submission]:
        return (
            self.db.query(Submission)
            .filter(
                Submission.exam_id == exam_id,
                Submission.status == SubmissionStatusEnum.COMPLETED,
            )
            .all()
        )
