"""Authoring of exams and questions.

This is the one place answers are normalised: option labels are trimmed
when a question is written, so grading can compare strings exactly.
"""

from __future__ import annotations

import logging
import uuid

from exam_engine.core.errors import NotFound, ValidationFailure
from exam_engine.db.models import (
    TRUE_FALSE_OPTIONS,
    Exam,
    Question,
    QuestionTypeEnum,
    TimerModeEnum,
)
from exam_engine.services.store import SqlAnswerKeyStore

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 30
DEFAULT_PASSING_SCORE = 50
DEFAULT_POINTS = 10


def normalize_question(
    text: str,
    question_type: QuestionTypeEnum,
    correct_answer: str,
    options: list[str] | None = None,
) -> tuple[str, list[str], str]:
    """Validate a question and return ``(text, options, correct_answer)``.

    MCQ options are trimmed and blanks dropped; at least two must remain and
    the correct answer must be one of them. TRUE_FALSE options are fixed.
    """
    text = text.strip()
    if not text:
        raise ValidationFailure("Question text is required")
    if not correct_answer:
        raise ValidationFailure("Correct answer is required")

    if question_type == QuestionTypeEnum.MCQ:
        opts = [o.strip() for o in options or [] if o and o.strip()]
        correct_answer = correct_answer.strip()
        if len(opts) < 2:
            raise ValidationFailure("At least two options are required")
        if correct_answer not in opts:
            raise ValidationFailure("Correct answer must be one of the options")
        return text, opts, correct_answer

    if correct_answer not in TRUE_FALSE_OPTIONS:
        raise ValidationFailure(
            f"Correct answer must be either {TRUE_FALSE_OPTIONS[0]} or {TRUE_FALSE_OPTIONS[1]}"
        )
    return text, list(TRUE_FALSE_OPTIONS), correct_answer


class AnswerKeyAuthor:
    def __init__(self, answer_keys: SqlAnswerKeyStore):
        self.answer_keys = answer_keys

    def _require_exam(self, exam_id: uuid.UUID) -> Exam:
        with self.answer_keys.reading():
            exam = self.answer_keys.get_exam(exam_id)
        if exam is None:
            raise NotFound("Exam not found")
        return exam

    def create_exam(
        self,
        title: str,
        duration_minutes: int | None = None,
        passing_score: int | None = None,
        timer_mode: TimerModeEnum = TimerModeEnum.EXAM_TOTAL,
        question_time_seconds: int | None = None,
    ) -> Exam:
        title = title.strip()
        if not title:
            raise ValidationFailure("Title is required")
        if duration_minutes is None or duration_minutes <= 0:
            duration_minutes = DEFAULT_DURATION_MINUTES
        if passing_score is None:
            passing_score = DEFAULT_PASSING_SCORE
        if not 0 <= passing_score <= 100:
            raise ValidationFailure("Passing score must be between 0 and 100")
        if question_time_seconds is not None and question_time_seconds <= 0:
            raise ValidationFailure("Question time must be positive")

        exam = Exam(
            title=title,
            duration_minutes=duration_minutes,
            passing_score=passing_score,
            timer_mode=timer_mode,
            question_time_seconds=question_time_seconds,
        )
        with self.answer_keys.transaction():
            self.answer_keys.add(exam)
        logger.info("Created exam %s (%s)", exam.id, title)
        return exam

    def add_question(
        self,
        exam_id: uuid.UUID,
        text: str,
        question_type: QuestionTypeEnum,
        correct_answer: str,
        options: list[str] | None = None,
        points: int | None = None,
    ) -> Question:
        self._require_exam(exam_id)
        text, options, correct_answer = normalize_question(
            text, question_type, correct_answer, options
        )
        if points is None or points <= 0:
            points = DEFAULT_POINTS

        with self.answer_keys.transaction():
            question = Question(
                exam_id=exam_id,
                text=text,
                question_type=question_type,
                options=options,
                correct_answer=correct_answer,
                points=points,
                position=self.answer_keys.next_position(exam_id),
            )
            self.answer_keys.add(question)
        return question

    def update_exam(
        self,
        exam_id: uuid.UUID,
        title: str | None = None,
        duration_minutes: int | None = None,
        passing_score: int | None = None,
    ) -> Exam:
        """Change exam settings; fields left as None are kept.

        Attempts already in progress pick up a new duration on their next
        deadline check, and completed attempts keep the score they were given.
        """
        exam = self._require_exam(exam_id)
        changes: dict = {}
        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationFailure("Title is required")
            changes["title"] = title
        if duration_minutes is not None:
            if duration_minutes <= 0:
                raise ValidationFailure("Duration must be positive")
            changes["duration_minutes"] = duration_minutes
        if passing_score is not None:
            if not 0 <= passing_score <= 100:
                raise ValidationFailure("Passing score must be between 0 and 100")
            changes["passing_score"] = passing_score

        with self.answer_keys.transaction():
            for name, value in changes.items():
                setattr(exam, name, value)
        logger.info("Updated exam %s: %s", exam_id, ", ".join(changes) or "no changes")
        return exam

    def delete_question(self, exam_id: uuid.UUID, question_id: uuid.UUID) -> None:
        """Remove a question from the answer key.

        Stored answers that reference it are left alone; analytics and
        grading only ever look at the questions that currently exist.
        """
        self._require_exam(exam_id)
        with self.answer_keys.reading():
            question = self.answer_keys.get_question(question_id)
        if question is None or question.exam_id != exam_id:
            raise NotFound("Question not found")
        with self.answer_keys.transaction():
            self.answer_keys.delete(question)
        logger.info("Deleted question %s from exam %s", question_id, exam_id)
