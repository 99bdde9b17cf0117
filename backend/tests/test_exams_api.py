"""Integration tests for the exam session endpoints.

Covers:
  POST /api/exams/{exam_id}/session
  PUT  /api/exams/{exam_id}/session/answers
  POST /api/exams/{exam_id}/submit
"""

import uuid
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.orm import Session

from exam_engine.core.errors import EXPIRED_MESSAGE, STORAGE_UNAVAILABLE_MESSAGE
from exam_engine.core.security import create_access_token
from exam_engine.db.models import Submission, SubmissionOutcomeEnum, SubmissionStatusEnum


class TestHealth:
    def test_health(self, client: TestClient):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "service": "exam-engine", "database": "ok"}

    def test_root(self, client: TestClient):
        assert client.get("/").json()["name"] == "Exam Engine API"


class TestStartSession:
    def test_start_returns_camel_case(self, client, make_user, auth_headers, sample_exam):
        user = make_user()
        resp = client.post(f"/api/exams/{sample_exam.id}/session", headers=auth_headers(user))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["success"] is True
        assert data["resumed"] is False
        assert {"submissionId", "startedAt", "deadline"} <= data.keys()

    def test_start_twice_same_started_at(self, client, make_user, auth_headers, sample_exam, clock):
        headers = auth_headers(make_user())
        first = client.post(f"/api/exams/{sample_exam.id}/session", headers=headers).json()
        clock.advance(minutes=5)
        second = client.post(f"/api/exams/{sample_exam.id}/session", headers=headers).json()
        assert second["resumed"] is True
        assert second["startedAt"] == first["startedAt"]
        assert second["submissionId"] == first["submissionId"]

    def test_requires_auth(self, client: TestClient, sample_exam):
        resp = client.post(f"/api/exams/{sample_exam.id}/session")
        assert resp.status_code == 401
        body = resp.json()
        assert body["success"] is False
        assert body["error_code"] == "unauthorized"

    def test_bad_token(self, client: TestClient, sample_exam):
        resp = client.post(
            f"/api/exams/{sample_exam.id}/session",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid or expired token"

    def test_expired_token(self, client, make_user, sample_exam):
        user = make_user()
        token = create_access_token({"sub": user.auth_id}, expires_delta=timedelta(minutes=-1))
        resp = client.post(
            f"/api/exams/{sample_exam.id}/session",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    def test_unknown_exam(self, client, make_user, auth_headers):
        resp = client.post(f"/api/exams/{uuid.uuid4()}/session", headers=auth_headers(make_user()))
        assert resp.status_code == 404
        assert resp.json()["error"] == "Exam not found"

    def test_malformed_exam_id(self, client, make_user, auth_headers):
        resp = client.post("/api/exams/not-a-uuid/session", headers=auth_headers(make_user()))
        assert resp.status_code == 404


class TestSaveAnswers:
    def test_autosave(self, client, make_user, auth_headers, sample_exam, qids, db: Session):
        user = make_user()
        headers = auth_headers(user)
        q1, _ = qids(sample_exam)
        client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)

        resp = client.put(
            f"/api/exams/{sample_exam.id}/session/answers",
            json={"answers": {q1: "A"}},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["savedCount"] == 1

        row = db.query(Submission).filter(Submission.user_id == user.id).one()
        assert row.answers == {q1: "A"}

    def test_autosave_without_session(self, client, make_user, auth_headers, sample_exam):
        resp = client.put(
            f"/api/exams/{sample_exam.id}/session/answers",
            json={"answers": {}},
            headers=auth_headers(make_user()),
        )
        assert resp.status_code == 404

    def test_autosave_after_deadline(self, client, make_user, auth_headers, sample_exam, clock):
        headers = auth_headers(make_user())
        client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)
        clock.advance(minutes=31)
        resp = client.put(
            f"/api/exams/{sample_exam.id}/session/answers",
            json={"answers": {}},
            headers=headers,
        )
        assert resp.status_code == 410
        assert resp.json()["error_code"] == "expired"


class TestSubmit:
    def test_submit_half_right(self, client, make_user, auth_headers, sample_exam, qids):
        headers = auth_headers(make_user())
        q1, q2 = qids(sample_exam)
        client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)

        resp = client.post(
            f"/api/exams/{sample_exam.id}/submit",
            json={"answers": {q1: "A", q2: "خطأ"}},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["score"] == 5
        assert data["totalPoints"] == 10
        assert data["percentage"] == 50
        assert data["passed"] is True
        first = data["details"][0]
        assert first["questionId"] == q1
        assert first["userAnswer"] == "A"
        assert first["correctAnswer"] == "A"
        assert first["isCorrect"] is True

    def test_submit_empty(self, client, make_user, auth_headers, sample_exam):
        headers = auth_headers(make_user())
        client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)
        resp = client.post(f"/api/exams/{sample_exam.id}/submit", json={}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["percentage"] == 0
        assert resp.json()["passed"] is False

    def test_late_submit_gone(
        self, client, make_user, auth_headers, sample_exam, qids, clock, db: Session
    ):
        user = make_user()
        headers = auth_headers(user)
        q1, q2 = qids(sample_exam)
        client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)
        clock.advance(minutes=30, seconds=1)

        resp = client.post(
            f"/api/exams/{sample_exam.id}/submit",
            json={"answers": {q1: "A", q2: "صحيح"}},
            headers=headers,
        )
        assert resp.status_code == 410
        assert resp.json() == {
            "success": False,
            "error": EXPIRED_MESSAGE,
            "error_code": "expired",
        }

        row = db.query(Submission).filter(Submission.user_id == user.id).one()
        assert row.status == SubmissionStatusEnum.COMPLETED
        assert row.outcome == SubmissionOutcomeEnum.EXPIRED
        assert row.score == 0

    def test_resubmit_returns_same_result(self, client, make_user, auth_headers, sample_exam, qids):
        headers = auth_headers(make_user())
        q1, q2 = qids(sample_exam)
        client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)
        url = f"/api/exams/{sample_exam.id}/submit"

        first = client.post(url, json={"answers": {q1: "A", q2: "صحيح"}}, headers=headers).json()
        second = client.post(url, json={"answers": {}}, headers=headers).json()
        assert second == first

    def test_submit_requires_auth(self, client: TestClient, sample_exam):
        resp = client.post(f"/api/exams/{sample_exam.id}/submit", json={})
        assert resp.status_code == 401

    def test_unprovisioned_user(self, client: TestClient, sample_exam):
        token = create_access_token({"sub": "auth_nobody"})
        resp = client.post(
            f"/api/exams/{sample_exam.id}/submit",
            json={},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "User profile not found"

    def test_malformed_body_uses_error_envelope(self, client, make_user, auth_headers, sample_exam):
        resp = client.post(
            f"/api/exams/{sample_exam.id}/submit",
            json={"answers": ["A", "B"]},
            headers=auth_headers(make_user()),
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["error_code"] == "validation_error"
        assert body["error"].startswith("answers")


class TestStorageOutage:
    @staticmethod
    def _drop(db: Session, table: str) -> None:
        db.execute(text(f"DROP TABLE {table}"))
        db.commit()

    def test_submit_read_failure_uses_envelope(
        self, client, make_user, auth_headers, sample_exam, db: Session
    ):
        headers = auth_headers(make_user())
        client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)
        self._drop(db, "questions")

        resp = client.post(f"/api/exams/{sample_exam.id}/submit", json={}, headers=headers)

        assert resp.status_code == 503
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.json() == {
            "success": False,
            "error": STORAGE_UNAVAILABLE_MESSAGE,
            "error_code": "persistence_failure",
        }

    def test_identity_lookup_failure_uses_envelope(
        self, client, make_user, auth_headers, sample_exam, db: Session
    ):
        headers = auth_headers(make_user())
        self._drop(db, "users")

        resp = client.post(f"/api/exams/{sample_exam.id}/session", headers=headers)

        assert resp.status_code == 503
        assert resp.json()["error_code"] == "persistence_failure"
