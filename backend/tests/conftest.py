"""Shared pytest fixtures for backend tests."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from exam_engine.api.deps import get_clock
from exam_engine.core.security import create_access_token
from exam_engine.db.models import (
    TRUE_FALSE_OPTIONS,
    Exam,
    Question,
    QuestionTypeEnum,
    RoleEnum,
    TimerModeEnum,
    User,
)
from exam_engine.db.session import Base, get_db
from exam_engine.main import app
from exam_engine.services.store import SqlAnswerKeyStore, SqlSessionStore


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def db():
    """Fresh schema and DB session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def answer_keys(db: Session) -> SqlAnswerKeyStore:
    return SqlAnswerKeyStore(db)


@pytest.fixture
def sessions(db: Session) -> SqlSessionStore:
    return SqlSessionStore(db)


@pytest.fixture(scope="function")
def client(db: Session, clock: FakeClock):
    """FastAPI test client with overridden DB and clock dependencies."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ── Factories ──────────────────────────────────────────────────────────────────


@pytest.fixture
def make_user(db: Session):
    def _make(role: RoleEnum = RoleEnum.STUDENT) -> User:
        uid = str(uuid.uuid4())[:8]
        user = User(
            auth_id=f"auth_{uid}",
            email=f"{role.value.lower()}_{uid}@ex.com",
            full_name=f"Test {role.value.title()}",
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_exam(db: Session):
    """Create an exam; *questions* are ``(type, correct, points)`` or full dicts."""

    def _make(
        questions=(),
        duration_minutes: int = 30,
        passing_score: int = 50,
        timer_mode: TimerModeEnum = TimerModeEnum.EXAM_TOTAL,
        question_time_seconds: int | None = None,
        title: str = "Fiqh basics",
    ) -> Exam:
        exam = Exam(
            title=title,
            duration_minutes=duration_minutes,
            passing_score=passing_score,
            timer_mode=timer_mode,
            question_time_seconds=question_time_seconds,
        )
        db.add(exam)
        db.flush()
        for position, item in enumerate(questions):
            if isinstance(item, tuple):
                qtype, correct, points = item
                item = {"question_type": qtype, "correct_answer": correct, "points": points}
            qtype = item["question_type"]
            options = item.get("options") or (
                list(TRUE_FALSE_OPTIONS) if qtype == QuestionTypeEnum.TRUE_FALSE else ["A", "B", "C"]
            )
            db.add(
                Question(
                    exam_id=exam.id,
                    text=item.get("text", f"Question {position + 1}"),
                    question_type=qtype,
                    options=options,
                    correct_answer=item["correct_answer"],
                    points=item["points"],
                    position=position,
                )
            )
        db.commit()
        db.refresh(exam)
        return exam

    return _make


@pytest.fixture
def sample_exam(make_exam):
    """5 pt MCQ with correct "A" and 5 pt TRUE_FALSE with correct "صحيح", pass at 50."""
    return make_exam(
        [
            (QuestionTypeEnum.MCQ, "A", 5),
            (QuestionTypeEnum.TRUE_FALSE, "صحيح", 5),
        ]
    )


def question_ids(exam: Exam) -> list[str]:
    return [str(q.id) for q in sorted(exam.questions, key=lambda q: q.position)]


@pytest.fixture
def qids():
    return question_ids


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token({"sub": user.auth_id, "role": user.role.value})
        return {"Authorization": f"Bearer {token}"}

    return _headers
