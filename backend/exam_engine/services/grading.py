"""Scoring engine for MCQ / TRUE_FALSE exams.

Grading is a pure function of the answer key and the learner's answer map:
no I/O, no clock, no dependence on question or answer ordering.

Answers are compared as exact, case-sensitive strings by default. Any
normalisation happens once, when questions are authored (see
``answer_key.py``); ``AnswerMatch.TRIMMED`` is an opt-in policy that strips
surrounding whitespace on both sides at grading time.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Mapping, Protocol

logger = logging.getLogger(__name__)


class AnswerMatch(str, enum.Enum):
    EXACT = "exact"
    TRIMMED = "trimmed"


class GradableQuestion(Protocol):
    id: Any
    text: str
    options: list[str] | None
    correct_answer: str
    points: int


@dataclass
class QuestionResult:
    """Per-question outcome, enough to render a post-exam review."""

    question_id: str
    text: str
    options: list[str]
    user_answer: str | None
    correct_answer: str
    is_correct: bool
    points: int
    earned_points: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuestionResult":
        return cls(
            question_id=str(data["question_id"]),
            text=data.get("text", ""),
            options=list(data.get("options") or []),
            user_answer=data.get("user_answer"),
            correct_answer=data.get("correct_answer", ""),
            is_correct=bool(data.get("is_correct")),
            points=int(data.get("points", 0)),
            earned_points=int(data.get("earned_points", 0)),
        )


@dataclass
class GradeResult:
    score: int
    total_points: int
    percentage: int
    passed: bool
    details: list[QuestionResult] = field(default_factory=list)


# ── Helpers ───────────────────────────────────────────────────────────────────


def round_half_up(value: float) -> int:
    """Round a non-negative float half-up (2.5 → 3), unlike ``round``."""
    return int(math.floor(value + 0.5))


def to_percentage(part: int, whole: int) -> int:
    """``round_half_up(part / whole × 100)``, or 0 when *whole* is 0."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def answers_match(
    user_answer: str | None,
    correct_answer: str,
    match: AnswerMatch = AnswerMatch.EXACT,
) -> bool:
    """Is *user_answer* the correct answer under the given policy?

    A missing answer is never correct.
    """
    if user_answer is None:
        return False
    if match is AnswerMatch.TRIMMED:
        return user_answer.strip() == correct_answer.strip()
    return user_answer == correct_answer


# ── Main grading function ────────────────────────────────────────────────────


def grade(
    questions: Iterable[GradableQuestion],
    user_answers: Mapping[str, str | None],
    passing_score: int,
    match: AnswerMatch = AnswerMatch.EXACT,
) -> GradeResult:
    """Grade *user_answers* against the answer key.

    Args:
        questions: The exam's current question set.
        user_answers: ``{question_id: answer}``; absent ids count as unanswered.
        passing_score: Percentage threshold (0-100).
        match: Answer comparison policy.

    Returns:
        A ``GradeResult``. ``passed`` is decided on the percentage, never
        on raw points.
    """
    score = 0
    total_points = 0
    details: list[QuestionResult] = []

    for question in questions:
        question_id = str(question.id)
        total_points += question.points
        user_answer = user_answers.get(question_id)
        is_correct = answers_match(user_answer, question.correct_answer, match)
        earned = question.points if is_correct else 0
        score += earned

        details.append(
            QuestionResult(
                question_id=question_id,
                text=question.text,
                options=list(question.options or []),
                user_answer=user_answer,
                correct_answer=question.correct_answer,
                is_correct=is_correct,
                points=question.points,
                earned_points=earned,
            )
        )

    percentage = to_percentage(score, total_points)
    passed = percentage >= passing_score

    logger.debug(
        "Graded %d questions: %d/%d points (%d%%) passed=%s",
        len(details), score, total_points, percentage, passed,
    )
    return GradeResult(
        score=score,
        total_points=total_points,
        percentage=percentage,
        passed=passed,
        details=details,
    )
