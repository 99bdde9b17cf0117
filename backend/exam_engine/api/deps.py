"""FastAPI dependencies shared across routes.

Identity: the bearer token's ``sub`` is the auth provider's user id, mapped
to ``users.auth_id``. Services are built per request from the request's DB
session, the configured policies and an overridable clock.
"""

import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from exam_engine.config import settings
from exam_engine.core.errors import Forbidden, NotFound, Unauthorized
from exam_engine.core.security import decode_access_token
from exam_engine.db.models import RoleEnum, User
from exam_engine.db.session import get_db
from exam_engine.services.analytics import AnalyticsAggregator
from exam_engine.services.answer_key import AnswerKeyAuthor
from exam_engine.services.deadline import Clock, DeadlinePolicy, utcnow
from exam_engine.services.finalizer import SubmissionFinalizer
from exam_engine.services.grading import AnswerMatch
from exam_engine.services.session_manager import SessionManager
from exam_engine.services.store import SqlAnswerKeyStore, SqlSessionStore

bearer_scheme = HTTPBearer(auto_error=False)


def parse_id(raw: str, what: str = "Exam") -> uuid.UUID:
    """Path ids that are not UUIDs cannot exist."""
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise NotFound(f"{what} not found") from None


# ── Identity ──────────────────────────────────────────────────────────────────


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Decode the JWT and return the caller's profile.

    401 without a valid token, 404 when the profile was never provisioned.
    """
    if credentials is None:
        raise Unauthorized()
    payload = decode_access_token(credentials.credentials)
    if payload is None or payload.get("sub") is None:
        raise Unauthorized("Invalid or expired token")
    user = db.query(User).filter(User.auth_id == payload["sub"]).first()
    if user is None:
        raise NotFound("User profile not found")
    return user


def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Raise 403 unless the caller is an authenticated admin."""
    try:
        user = get_current_user(credentials, db)
    except (Unauthorized, NotFound) as exc:
        raise Forbidden() from exc
    if user.role != RoleEnum.ADMIN:
        raise Forbidden()
    return user


# ── Services ──────────────────────────────────────────────────────────────────


def get_clock() -> Clock:
    return utcnow


def get_deadline_policy() -> DeadlinePolicy:
    return DeadlinePolicy.from_settings(settings)


def get_answer_match() -> AnswerMatch:
    return AnswerMatch(settings.GRADING_ANSWER_MATCH)


def get_session_manager(
    db: Session = Depends(get_db),
    policy: DeadlinePolicy = Depends(get_deadline_policy),
    clock: Clock = Depends(get_clock),
) -> SessionManager:
    return SessionManager(SqlAnswerKeyStore(db), SqlSessionStore(db), policy, clock)


def get_finalizer(
    db: Session = Depends(get_db),
    policy: DeadlinePolicy = Depends(get_deadline_policy),
    clock: Clock = Depends(get_clock),
    match: AnswerMatch = Depends(get_answer_match),
) -> SubmissionFinalizer:
    return SubmissionFinalizer(SqlAnswerKeyStore(db), SqlSessionStore(db), policy, clock, match)


def get_analytics(
    db: Session = Depends(get_db),
    match: AnswerMatch = Depends(get_answer_match),
) -> AnalyticsAggregator:
    return AnalyticsAggregator(SqlAnswerKeyStore(db), SqlSessionStore(db), match)


def get_author(db: Session = Depends(get_db)) -> AnswerKeyAuthor:
    return AnswerKeyAuthor(SqlAnswerKeyStore(db))
