import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_ID, TEACHER_ID
from exam_platform.main import create_application

STUDENT = 4000

TEACHER = {"X-User-Id": str(TEACHER_ID), "X-User-Role": "TEACHER"}
ADMIN = {"X-User-Id": str(ADMIN_ID), "X-User-Role": "ADMIN"}
STUDENT_HEADERS = {"X-User-Id": str(STUDENT), "X-User-Role": "STUDENT"}

EXAM = {
    "title": "Networks mock exam",
    "duration": 60,
    "price": 3,
    "questions": [
        {
            "type": "MULTIPLE_CHOICE",
            "text": "Which layer routes packets?",
            "points": 2,
            "options": [{"text": "Network"}, {"text": "Session"}],
            "correct_option_index": 0,
        },
        {
            "type": "OPEN_ENDED",
            "text": "Describe TCP slow start",
            "points": 3,
        },
    ],
}


@pytest.fixture
def client(engine, test_settings, clock):
    app = create_application(test_settings, engine=engine, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


def published_exam(client):
    response = client.post("/api/v1/exams/", json=EXAM, headers=TEACHER)
    assert response.status_code == 201
    exam = response.json()
    response = client.post(f"/api/v1/exams/{exam['id']}/publish", headers=TEACHER)
    assert response.status_code == 200
    return response.json()


def test_health(client):
    assert client.get("/").status_code == 200
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["sweeper_running"] is False


def test_identity_headers_are_required(client):
    response = client.get("/api/v1/attempts/me")
    assert response.status_code == 401

    response = client.get("/api/v1/attempts/me", headers={"X-User-Id": "abc", "X-User-Role": "STUDENT"})
    assert response.status_code == 401


def test_students_cannot_author_exams(client):
    response = client.post("/api/v1/exams/", json=EXAM, headers=STUDENT_HEADERS)
    assert response.status_code == 403


def test_full_attempt_flow(client, clock):
    exam = published_exam(client)

    response = client.post(f"/api/v1/exams/{exam['id']}/attempts", headers=STUDENT_HEADERS)
    assert response.status_code == 402
    assert response.json()["code"] == "insufficient_funds"

    response = client.post("/api/v1/payments/top-up", json={"user_id": STUDENT, "amount": 5}, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["balance"] == 5

    response = client.post(f"/api/v1/exams/{exam['id']}/attempts", headers=STUDENT_HEADERS)
    assert response.status_code == 201
    attempt = response.json()
    assert attempt["status"] == "IN_PROGRESS"
    assert attempt["total_score"] == 5

    response = client.post(f"/api/v1/exams/{exam['id']}/attempts", headers=STUDENT_HEADERS)
    assert response.status_code == 409
    assert response.json()["code"] == "attempt_in_progress"

    detail = client.get(f"/api/v1/attempts/{attempt['id']}", headers=STUDENT_HEADERS).json()
    choice, open_question = detail["questions"]
    assert "correct_option_id" not in choice

    response = client.put(f"/api/v1/attempts/{attempt['id']}/answers", headers=STUDENT_HEADERS, json={"answers": [
        {"question_id": choice["id"], "option_id": choice["options"][0]["id"]},
        {"question_id": open_question["id"], "content": "Congestion window doubles each RTT"},
    ]})
    assert response.status_code == 200
    assert len(response.json()) == 2

    clock.advance(minutes=30)
    beat = client.get(f"/api/v1/attempts/{attempt['id']}/heartbeat", headers=STUDENT_HEADERS).json()
    assert beat["elapsed_seconds"] == 1800
    assert beat["remaining_seconds"] == 1800

    response = client.post(f"/api/v1/attempts/{attempt['id']}/submit", headers=STUDENT_HEADERS)
    assert response.status_code == 200
    result = response.json()
    assert result["attempt"]["status"] == "COMPLETED"
    assert result["attempt"]["score"] == 2
    assert result["attempt"]["grading_state"] == "AWAITING_REVIEW"

    open_answer = next(a for a in result["answers"] if a["question_id"] == open_question["id"])
    response = client.patch(
        f"/api/v1/attempts/{attempt['id']}/answers/{open_answer['id']}/grade",
        json={"points": 2.5},
        headers=TEACHER,
    )
    assert response.status_code == 200
    assert response.json()["score"] == 4.5
    assert response.json()["grading_state"] == "GRADED"

    board = client.get(f"/api/v1/exams/{exam['id']}/leaderboard", headers=STUDENT_HEADERS).json()
    assert board["current_user_position"] == 1
    assert board["entries"][0]["percentage"] == 90.0
    assert board["entries"][0]["prize_amount"] == 10.0

    mine = client.get("/api/v1/attempts/me", headers=STUDENT_HEADERS).json()
    assert [a["id"] for a in mine] == [attempt["id"]]

    balance = client.get("/api/v1/payments/balance", headers=STUDENT_HEADERS).json()
    assert balance["balance"] == 2


def test_expired_attempt_is_gone(client, clock):
    exam = published_exam(client)
    client.post("/api/v1/payments/top-up", json={"user_id": STUDENT, "amount": 3}, headers=ADMIN)
    attempt = client.post(f"/api/v1/exams/{exam['id']}/attempts", headers=STUDENT_HEADERS).json()

    clock.advance(minutes=61)

    response = client.post(f"/api/v1/attempts/{attempt['id']}/submit", headers=STUDENT_HEADERS)
    assert response.status_code == 410
    assert response.json()["code"] == "attempt_expired"

    result = client.get(f"/api/v1/attempts/{attempt['id']}/result", headers=STUDENT_HEADERS).json()
    assert result["attempt"]["status"] == "TIMED_OUT"


def test_admin_sweep_and_prize_award(client, clock):
    exam = published_exam(client)
    client.post("/api/v1/payments/top-up", json={"user_id": STUDENT, "amount": 3}, headers=ADMIN)
    attempt = client.post(f"/api/v1/exams/{exam['id']}/attempts", headers=STUDENT_HEADERS).json()

    response = client.post("/api/v1/admin/sweep", headers=STUDENT_HEADERS)
    assert response.status_code == 403

    clock.advance(minutes=61)
    response = client.post("/api/v1/admin/sweep", headers=ADMIN)
    assert response.json() == {"processed_count": 1, "attempt_ids": [attempt["id"]]}

    # timed out attempts are not ranked by default, so there is nobody to pay
    response = client.post(f"/api/v1/exams/{exam['id']}/prizes/award", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["skipped_reason"] == "no_winners"
