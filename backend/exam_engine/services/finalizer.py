"""Grade and close exam attempts.

``SubmissionFinalizer.finalize`` is the only code path that writes a
terminal score. Every completion goes through a conditional update guarded
by ``status = ONGOING``, so a second completer can never overwrite a
finished attempt; it replays the stored result instead. A caller who never
started a session has no row to guard, so the transaction first takes the
user's row lock and concurrent finalizers for that user run one at a time.
"""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime
from typing import Any, Mapping

from exam_engine.core.errors import Expired, NotFound
from exam_engine.db.models import (
    Submission,
    SubmissionOutcomeEnum,
    SubmissionStatusEnum,
)
from exam_engine.services.deadline import (
    Clock,
    DeadlinePolicy,
    compute_deadline,
    is_expired,
    utcnow,
)
from exam_engine.services.grading import AnswerMatch, GradeResult, QuestionResult, grade
from exam_engine.services.session_manager import load_exam_for_user
from exam_engine.services.store import AnswerKeyStore, SessionStore

logger = logging.getLogger(__name__)


class _Resolution(enum.Enum):
    GRADED = "graded"
    EXPIRED = "expired"
    REPLAY = "replay"


def _completed_values(result: GradeResult, answers: dict[str, Any], now: datetime) -> dict[str, Any]:
    return {
        "score": result.percentage,
        "points_earned": result.score,
        "total_points": result.total_points,
        "passed": result.passed,
        "answers": answers,
        "details": [d.to_dict() for d in result.details],
        "outcome": SubmissionOutcomeEnum.SUBMITTED,
        "submitted_at": now,
    }


def stored_result(submission: Submission) -> GradeResult:
    """Rebuild a ``GradeResult`` from a completed submission without re-grading."""
    return GradeResult(
        score=submission.points_earned or 0,
        total_points=submission.total_points or 0,
        percentage=submission.score or 0,
        passed=bool(submission.passed),
        details=[QuestionResult.from_dict(d) for d in submission.details or []],
    )


class SubmissionFinalizer:
    def __init__(
        self,
        answer_keys: AnswerKeyStore,
        sessions: SessionStore,
        policy: DeadlinePolicy | None = None,
        clock: Clock = utcnow,
        match: AnswerMatch = AnswerMatch.EXACT,
    ):
        self.answer_keys = answer_keys
        self.sessions = sessions
        self.policy = policy or DeadlinePolicy()
        self.clock = clock
        self.match = match

    def finalize(
        self,
        exam_id: uuid.UUID,
        user_id: uuid.UUID | None,
        user_answers: Mapping[str, str | None],
    ) -> GradeResult:
        """Grade *user_answers* and close the caller's attempt.

        Raises:
            Unauthorized / NotFound: caller or exam missing.
            Expired: the attempt's deadline passed; it was closed with a zero score.
            PersistenceFailure: the state transition could not be written.
        """
        with self.answer_keys.reading():
            exam = load_exam_for_user(self.answer_keys, exam_id, user_id)
            questions = self.answer_keys.get_questions(exam.id)
        result = grade(questions, user_answers, exam.passing_score, self.match)
        answers = dict(user_answers)
        now = self.clock()

        with self.sessions.transaction():
            self.sessions.lock_owner(user_id)
            existing = self.sessions.find_ongoing(user_id, exam.id)
            if existing is not None:
                target_id = existing.id
                deadline = compute_deadline(exam, existing.started_at, self.policy, len(questions))
                if is_expired(deadline, now):
                    won = self.sessions.complete_if_ongoing(
                        existing.id,
                        score=0,
                        points_earned=0,
                        total_points=result.total_points,
                        passed=False,
                        answers=answers,
                        outcome=SubmissionOutcomeEnum.EXPIRED,
                        submitted_at=now,
                    )
                    resolution = _Resolution.EXPIRED if won else _Resolution.REPLAY
                else:
                    won = self.sessions.complete_if_ongoing(
                        existing.id, **_completed_values(result, answers, now)
                    )
                    resolution = _Resolution.GRADED if won else _Resolution.REPLAY
            else:
                latest = self.sessions.find_latest(user_id, exam.id)
                if latest is not None and latest.status == SubmissionStatusEnum.COMPLETED:
                    target_id = latest.id
                    resolution = _Resolution.REPLAY
                else:
                    created = self.sessions.insert(
                        Submission(
                            user_id=user_id,
                            exam_id=exam.id,
                            status=SubmissionStatusEnum.COMPLETED,
                            started_at=now,
                            **_completed_values(result, answers, now),
                        )
                    )
                    target_id = created.id
                    resolution = _Resolution.GRADED

        if resolution is _Resolution.EXPIRED:
            logger.info("Late submission for attempt %s recorded with zero score", target_id)
            raise Expired()
        if resolution is _Resolution.REPLAY:
            return self.replay(target_id)

        logger.info(
            "Completed attempt %s: %d%% passed=%s", target_id, result.percentage, result.passed
        )
        return result

    def replay(self, submission_id: uuid.UUID) -> GradeResult:
        """Return what is already stored for a completed attempt."""
        with self.sessions.reading():
            submission = self.sessions.get(submission_id)
        if submission is None:
            raise NotFound("Submission not found")
        if submission.outcome == SubmissionOutcomeEnum.EXPIRED:
            raise Expired()
        logger.info("Replaying stored result for attempt %s", submission_id)
        return stored_result(submission)
