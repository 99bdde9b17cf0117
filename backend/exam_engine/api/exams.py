"""Learner-facing exam routes: start/resume, autosave, submit."""

from fastapi import APIRouter, Depends

from exam_engine.api.deps import (
    get_current_user,
    get_finalizer,
    get_session_manager,
    parse_id,
)
from exam_engine.db.models import User
from exam_engine.schemas.session import (
    AnswersSave,
    AnswersSaveRead,
    ExamSubmit,
    GradeResultRead,
    QuestionDetailRead,
    SessionStartRead,
)
from exam_engine.services.finalizer import SubmissionFinalizer
from exam_engine.services.session_manager import SessionManager

router = APIRouter()


@router.post("/{exam_id}/session", response_model=SessionStartRead)
def start_session(
    exam_id: str,
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Start a timed attempt, or resume the caller's live one.

    Repeated calls before the deadline return the same ``startedAt``.
    """
    started = manager.start_or_resume(parse_id(exam_id), current_user.id)
    return SessionStartRead(
        submission_id=started.submission_id,
        started_at=started.started_at,
        deadline=started.deadline,
        resumed=started.resumed,
    )


@router.put("/{exam_id}/session/answers", response_model=AnswersSaveRead)
def save_answers(
    exam_id: str,
    body: AnswersSave,
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Autosave answers into the live attempt."""
    saved = manager.save_answers(parse_id(exam_id), current_user.id, body.answers)
    return AnswersSaveRead(saved_count=saved)


@router.post("/{exam_id}/submit", response_model=GradeResultRead)
def submit_exam(
    exam_id: str,
    body: ExamSubmit,
    current_user: User = Depends(get_current_user),
    finalizer: SubmissionFinalizer = Depends(get_finalizer),
):
    """Grade the answers and close the attempt.

    After the deadline this answers 410 with the localized time-up message.
    """
    result = finalizer.finalize(parse_id(exam_id), current_user.id, body.answers)
    return GradeResultRead(
        score=result.score,
        total_points=result.total_points,
        percentage=result.percentage,
        passed=result.passed,
        details=[QuestionDetailRead.model_validate(d) for d in result.details],
    )
