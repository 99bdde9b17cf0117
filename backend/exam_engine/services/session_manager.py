"""Start, resume, reap and autosave exam attempts.

Flow for ``start_or_resume``:
  1. ``reap``  → close the caller's ONGOING attempt if its deadline passed
  2. resume   → an ONGOING attempt still in time is returned unchanged
  3. create   → otherwise insert a fresh ONGOING attempt

Steps 1–3 share one transaction. Two concurrent starts can both see "no
ONGOING attempt"; the loser's insert trips ``uq_submission_one_ongoing`` and
is retried as a resume.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from exam_engine.core.errors import Expired, NotFound, Unauthorized, WriteConflict
from exam_engine.db.models import (
    Exam,
    Submission,
    SubmissionOutcomeEnum,
    SubmissionStatusEnum,
)
from exam_engine.services.deadline import (
    Clock,
    DeadlinePolicy,
    compute_deadline,
    ensure_utc,
    is_expired,
    utcnow,
)
from exam_engine.services.store import AnswerKeyStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class StartedSession:
    submission_id: uuid.UUID
    started_at: datetime
    deadline: datetime | None
    resumed: bool


def load_exam_for_user(
    answer_keys: AnswerKeyStore, exam_id: uuid.UUID, user_id: uuid.UUID | None
) -> Exam:
    """Resolve the caller and the exam, or raise Unauthorized / NotFound."""
    if user_id is None:
        raise Unauthorized()
    if answer_keys.get_user(user_id) is None:
        raise NotFound("User profile not found")
    exam = answer_keys.get_exam(exam_id)
    if exam is None:
        raise NotFound("Exam not found")
    return exam


class SessionManager:
    def __init__(
        self,
        answer_keys: AnswerKeyStore,
        sessions: SessionStore,
        policy: DeadlinePolicy | None = None,
        clock: Clock = utcnow,
    ):
        self.answer_keys = answer_keys
        self.sessions = sessions
        self.policy = policy or DeadlinePolicy()
        self.clock = clock

    def _deadline(self, exam: Exam, submission: Submission) -> datetime | None:
        question_count = len(self.answer_keys.get_questions(exam.id))
        return compute_deadline(exam, submission.started_at, self.policy, question_count)

    def _started(self, exam: Exam, submission: Submission, resumed: bool) -> StartedSession:
        return StartedSession(
            submission_id=submission.id,
            started_at=ensure_utc(submission.started_at),
            deadline=self._deadline(exam, submission),
            resumed=resumed,
        )

    # ── Reap ──────────────────────────────────────────────────────────────

    def reap(self, exam: Exam, user_id: uuid.UUID, now: datetime) -> Submission | None:
        """Complete the caller's ONGOING attempt with a zero score if it expired.

        Answers are left as last saved. Must run inside a store transaction.
        Returns the reaped submission, or None when nothing was stale.
        """
        existing = self.sessions.find_ongoing(user_id, exam.id)
        if existing is None or not is_expired(self._deadline(exam, existing), now):
            return None

        closed = self.sessions.complete_if_ongoing(
            existing.id,
            score=0,
            passed=False,
            outcome=SubmissionOutcomeEnum.EXPIRED,
            submitted_at=now,
        )
        if closed:
            logger.info(
                "Reaped expired attempt %s (user=%s exam=%s)", existing.id, user_id, exam.id
            )
        return existing

    # ── Start / resume ────────────────────────────────────────────────────

    def start_or_resume(self, exam_id: uuid.UUID, user_id: uuid.UUID | None) -> StartedSession:
        with self.answer_keys.reading():
            exam = load_exam_for_user(self.answer_keys, exam_id, user_id)
        now = self.clock()

        try:
            with self.sessions.transaction():
                self.reap(exam, user_id, now)
                existing = self.sessions.find_ongoing(user_id, exam.id)
                if existing is None:
                    existing = self.sessions.insert(
                        Submission(
                            user_id=user_id,
                            exam_id=exam.id,
                            status=SubmissionStatusEnum.ONGOING,
                            started_at=now,
                            passed=False,
                            answers={},
                        )
                    )
                    resumed = False
                    logger.info("Started attempt %s (user=%s exam=%s)", existing.id, user_id, exam.id)
                else:
                    resumed = True
                    logger.debug("Resuming attempt %s", existing.id)
        except WriteConflict:
            with self.sessions.reading():
                existing = self.sessions.find_ongoing(user_id, exam.id)
            if existing is None:
                raise
            logger.info("Concurrent start for user=%s exam=%s, resuming %s", user_id, exam.id, existing.id)
            resumed = True

        with self.sessions.reading():
            return self._started(exam, existing, resumed)

    # ── Autosave ──────────────────────────────────────────────────────────

    def save_answers(
        self,
        exam_id: uuid.UUID,
        user_id: uuid.UUID | None,
        answers: Mapping[str, str | None],
    ) -> int:
        """Merge *answers* into the caller's ONGOING attempt.

        Unknown question ids are dropped. Returns the number of answers now
        stored. Raises ``Expired`` (after closing the attempt) when the
        deadline has passed.
        """
        with self.answer_keys.reading():
            exam = load_exam_for_user(self.answer_keys, exam_id, user_id)
            known = {str(q.id) for q in self.answer_keys.get_questions(exam.id)}
        now = self.clock()
        expired = False

        with self.sessions.transaction():
            existing = self.sessions.find_ongoing(user_id, exam.id)
            if existing is None:
                raise NotFound("No exam session in progress")

            merged = dict(existing.answers or {})
            merged.update({qid: a for qid, a in answers.items() if qid in known})

            if is_expired(self._deadline(exam, existing), now):
                self.sessions.complete_if_ongoing(
                    existing.id,
                    answers=merged,
                    score=0,
                    passed=False,
                    outcome=SubmissionOutcomeEnum.EXPIRED,
                    submitted_at=now,
                )
                expired = True
            else:
                self.sessions.update_answers_if_ongoing(existing.id, merged)

        if expired:
            logger.info("Autosave after deadline closed attempt %s", existing.id)
            raise Expired()
        return len(merged)
