"""Integration tests for the admin endpoints.

Covers:
  POST /api/admin/exams
  PATCH  /api/admin/exams/{exam_id}
  POST /api/admin/exams/{exam_id}/questions
  DELETE /api/admin/exams/{exam_id}/questions/{question_id}
  GET  /api/admin/exams/analytics
  GET  /api/admin/exams/{exam_id}/analytics
  GET  /api/admin/exams/{exam_id}/stats
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from exam_engine.db.models import RoleEnum


@pytest.fixture
def admin_headers(make_user, auth_headers):
    return auth_headers(make_user(RoleEnum.ADMIN))


def _take_exam(client: TestClient, exam_id, headers, answers):
    client.post(f"/api/exams/{exam_id}/session", headers=headers)
    resp = client.post(f"/api/exams/{exam_id}/submit", json={"answers": answers}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestAccess:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/api/admin/exams/analytics"),
            ("get", "/api/admin/exams/{id}/analytics"),
            ("get", "/api/admin/exams/{id}/stats"),
            ("patch", "/api/admin/exams/{id}"),
        ],
    )
    def test_student_forbidden(self, client, make_user, auth_headers, sample_exam, method, path):
        resp = getattr(client, method)(
            path.format(id=sample_exam.id), headers=auth_headers(make_user())
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "Admin access required"

    def test_anonymous_forbidden(self, client: TestClient):
        resp = client.get("/api/admin/exams/analytics")
        assert resp.status_code == 403
        assert resp.json()["error_code"] == "forbidden"

    def test_student_cannot_author(self, client, make_user, auth_headers):
        resp = client.post(
            "/api/admin/exams", json={"title": "Nope"}, headers=auth_headers(make_user())
        )
        assert resp.status_code == 403


class TestAuthoring:
    def test_create_exam_and_questions(self, client: TestClient, admin_headers):
        resp = client.post(
            "/api/admin/exams",
            json={"title": "Seerah", "durationMinutes": 20, "passingScore": 60},
            headers=admin_headers,
        )
        assert resp.status_code == 201, resp.text
        exam = resp.json()
        assert exam["durationMinutes"] == 20
        assert exam["passingScore"] == 60
        assert exam["timerMode"] == "EXAM_TOTAL"

        resp = client.post(
            f"/api/admin/exams/{exam['id']}/questions",
            json={
                "text": "Year of Hijra?",
                "type": "MCQ",
                "options": [" 622 ", "632", ""],
                "correctAnswer": "622",
                "points": 4,
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201, resp.text
        question = resp.json()
        assert question["options"] == ["622", "632"]
        assert question["position"] == 0
        assert question["points"] == 4

        resp = client.post(
            f"/api/admin/exams/{exam['id']}/questions",
            json={"text": "The Hijra was to Madinah", "type": "TRUE_FALSE", "correctAnswer": "صحيح"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["options"] == ["صحيح", "خطأ"]
        assert resp.json()["position"] == 1
        assert resp.json()["points"] == 10

    def test_invalid_question_rejected(self, client, admin_headers, sample_exam):
        resp = client.post(
            f"/api/admin/exams/{sample_exam.id}/questions",
            json={"text": "Pick", "type": "MCQ", "options": ["A", "B"], "correctAnswer": "C"},
            headers=admin_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "validation_error"

    def test_question_for_unknown_exam(self, client, admin_headers):
        resp = client.post(
            f"/api/admin/exams/{uuid.uuid4()}/questions",
            json={"text": "Q", "type": "TRUE_FALSE", "correctAnswer": "خطأ"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_update_exam(self, client, admin_headers, sample_exam):
        resp = client.patch(
            f"/api/admin/exams/{sample_exam.id}",
            json={"durationMinutes": 45},
            headers=admin_headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["durationMinutes"] == 45
        assert resp.json()["title"] == sample_exam.title

    def test_update_unknown_exam(self, client, admin_headers):
        resp = client.patch(
            f"/api/admin/exams/{uuid.uuid4()}", json={"title": "X"}, headers=admin_headers
        )
        assert resp.status_code == 404

    def test_delete_question(self, client, admin_headers, sample_exam, qids):
        q1, q2 = qids(sample_exam)
        resp = client.delete(
            f"/api/admin/exams/{sample_exam.id}/questions/{q1}", headers=admin_headers
        )
        assert resp.status_code == 204

        analytics = client.get(
            f"/api/admin/exams/{sample_exam.id}/analytics", headers=admin_headers
        ).json()
        assert [q["questionId"] for q in analytics["questions"]] == [q2]

        again = client.delete(
            f"/api/admin/exams/{sample_exam.id}/questions/{q1}", headers=admin_headers
        )
        assert again.status_code == 404
        assert again.json()["error"] == "Question not found"


class TestAnalytics:
    def test_exam_analytics(
        self, client, make_user, auth_headers, admin_headers, sample_exam, qids
    ):
        q1, q2 = qids(sample_exam)
        _take_exam(client, sample_exam.id, auth_headers(make_user()), {q1: "A"})
        _take_exam(client, sample_exam.id, auth_headers(make_user()), {q1: "B", q2: "صحيح"})

        resp = client.get(f"/api/admin/exams/{sample_exam.id}/analytics", headers=admin_headers)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["attemptCount"] == 2
        assert data["questionCount"] == 2
        first, second = data["questions"]
        assert first["questionId"] == q1
        assert (first["totalAttempts"], first["correctCount"], first["accuracy"]) == (2, 1, 50)
        assert (second["totalAttempts"], second["correctCount"], second["accuracy"]) == (1, 1, 100)

    def test_all_exams(self, client, admin_headers, make_exam):
        make_exam(title="First")
        make_exam(title="Second")
        resp = client.get("/api/admin/exams/analytics", headers=admin_headers)
        assert resp.status_code == 200
        titles = {e["title"] for e in resp.json()["exams"]}
        assert titles == {"First", "Second"}
        assert all(e["error"] is None for e in resp.json()["exams"])

    def test_unknown_exam(self, client, admin_headers):
        resp = client.get(f"/api/admin/exams/{uuid.uuid4()}/analytics", headers=admin_headers)
        assert resp.status_code == 404


class TestStats:
    def test_stats(self, client, make_user, auth_headers, admin_headers, sample_exam, qids):
        q1, q2 = qids(sample_exam)
        _take_exam(client, sample_exam.id, auth_headers(make_user()), {q1: "A", q2: "صحيح"})
        _take_exam(client, sample_exam.id, auth_headers(make_user()), {})

        resp = client.get(f"/api/admin/exams/{sample_exam.id}/stats", headers=admin_headers)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["totalSubmissions"] == 2
        assert data["averageScore"] == 50.0
        assert data["passRate"] == 50.0
        assert data["highestScore"] == 100
        assert data["lowestScore"] == 0
