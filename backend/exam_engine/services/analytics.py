"""Per-question accuracy and score statistics for an exam.

All submissions count toward question accuracy, ONGOING ones included: the
partial answers of live attempts are still informative. Score statistics
(``exam_stats``) only look at COMPLETED attempts.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from exam_engine.core.errors import NotFound
from exam_engine.db.models import Exam
from exam_engine.services.grading import AnswerMatch, answers_match, to_percentage
from exam_engine.services.store import AnswerKeyStore, SessionStore

logger = logging.getLogger(__name__)

ANALYTICS_FAILED_MESSAGE = "Analytics unavailable for this exam"


@dataclass
class QuestionStat:
    question_id: str
    text: str
    correct_answer: str
    total_attempts: int = 0
    correct_count: int = 0

    @property
    def accuracy(self) -> int:
        return to_percentage(self.correct_count, self.total_attempts)


@dataclass
class ExamAnalytics:
    exam_id: uuid.UUID
    title: str
    question_count: int
    attempt_count: int
    questions: list[QuestionStat] = field(default_factory=list)


@dataclass
class AnalyticsFailure:
    """Placeholder for an exam whose aggregation failed."""

    exam_id: uuid.UUID
    title: str
    error: str


@dataclass
class ExamStats:
    exam_id: uuid.UUID
    total_submissions: int = 0
    average_score: float = 0.0
    pass_rate: float = 0.0
    highest_score: int = 0
    lowest_score: int = 0


class AnalyticsAggregator:
    def __init__(
        self,
        answer_keys: AnswerKeyStore,
        sessions: SessionStore,
        match: AnswerMatch = AnswerMatch.EXACT,
    ):
        self.answer_keys = answer_keys
        self.sessions = sessions
        self.match = match

    def _get_exam(self, exam_id: uuid.UUID) -> Exam:
        with self.answer_keys.reading():
            exam = self.answer_keys.get_exam(exam_id)
        if exam is None:
            raise NotFound("Exam not found")
        return exam

    def aggregate_exam(self, exam_id: uuid.UUID) -> ExamAnalytics:
        exam = self._get_exam(exam_id)
        with self.sessions.reading():
            questions = self.answer_keys.get_questions(exam.id)
            submissions = self.sessions.list_for_exam(exam.id)

        # dicts keep insertion order, so output follows authoring order
        stats: dict[str, QuestionStat] = {
            str(q.id): QuestionStat(
                question_id=str(q.id), text=q.text, correct_answer=q.correct_answer
            )
            for q in questions
        }

        for submission in submissions:
            answers: Any = submission.answers
            if not isinstance(answers, dict):
                continue
            for question_id, answer in answers.items():
                stat = stats.get(question_id)
                if stat is None:
                    continue
                stat.total_attempts += 1
                if answers_match(answer, stat.correct_answer, self.match):
                    stat.correct_count += 1

        return ExamAnalytics(
            exam_id=exam.id,
            title=exam.title,
            question_count=len(questions),
            attempt_count=len(submissions),
            questions=list(stats.values()),
        )

    def aggregate_all(self) -> list[ExamAnalytics | AnalyticsFailure]:
        """Aggregate every exam; one exam failing does not hide the others."""
        results: list[ExamAnalytics | AnalyticsFailure] = []
        with self.answer_keys.reading():
            listing = [(exam.id, exam.title) for exam in self.answer_keys.list_exams()]
        for exam_id, title in listing:
            try:
                results.append(self.aggregate_exam(exam_id))
            except Exception:
                logger.exception("Analytics failed for exam %s", exam_id)
                results.append(
                    AnalyticsFailure(exam_id=exam_id, title=title, error=ANALYTICS_FAILED_MESSAGE)
                )
        return results

    def exam_stats(self, exam_id: uuid.UUID) -> ExamStats:
        exam = self._get_exam(exam_id)
        with self.sessions.reading():
            completed = self.sessions.list_completed_for_exam(exam.id)
        if not completed:
            return ExamStats(exam_id=exam.id)

        scores = [s.score or 0 for s in completed]
        passed_count = sum(1 for s in completed if s.passed)
        return ExamStats(
            exam_id=exam.id,
            total_submissions=len(completed),
            average_score=round(sum(scores) / len(scores), 2),
            pass_rate=round(passed_count / len(completed) * 100, 2),
            highest_score=max(scores),
            lowest_score=min(scores),
        )
