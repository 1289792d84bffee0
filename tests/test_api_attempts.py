from datetime import timedelta

import pytest

from tests.conftest import T0, auth_headers, correct_answers, make_assessment, make_grant


def _start(client, headers, assessment_id):
    return client.post(f"/api/v1/assessments/{assessment_id}/attempts", headers=headers)


def test_requires_bearer_token(client, db):
    assessment = make_assessment(db)
    resp = client.post(f"/api/v1/assessments/{assessment.id}/attempts")
    assert resp.status_code == 401


def test_window_endpoint(client, db):
    assessment = make_assessment(db, window_opens_at=T0 + timedelta(hours=1), window_duration_minutes=100)
    headers, _ = auth_headers()
    resp = client.get(f"/api/v1/assessments/{assessment.id}/window", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "not_started"
    assert data["is_available"] is False
    assert data["status_label"] == "Not Started"
    assert data["can_start"] is False


def test_start_hides_answer_key_and_resumes(client, db):
    assessment = make_assessment(db)
    headers, user_id = auth_headers(name="Alice")
    resp = _start(client, headers, assessment.id)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["resumed"] is False
    assert data["remaining_seconds"] == 5400
    assert data["attempt"]["user_id"] == user_id
    assert len(data["questions"]) == 10
    assert "correct_option_index" not in data["questions"][0]

    again = _start(client, headers, assessment.id).json()
    assert again["resumed"] is True
    assert again["attempt"]["id"] == data["attempt"]["id"]


def test_not_eligible_carries_reason(client, db):
    assessment = make_assessment(db, requires_entitlement=True)
    headers, _ = auth_headers()
    resp = _start(client, headers, assessment.id)
    assert resp.status_code == 403
    detail = resp.json()["detail"]
    assert detail["code"] == "NOT_ELIGIBLE"
    assert detail["reason"] == "unentitled"


def test_granted_user_can_start(client, db):
    assessment = make_assessment(db, requires_entitlement=True)
    headers, user_id = auth_headers()
    make_grant(db, user_id, assessment.id)
    assert _start(client, headers, assessment.id).status_code == 200


def test_unknown_assessment_is_404(client, db):
    headers, _ = auth_headers()
    resp = _start(client, headers, "missing")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "NOT_FOUND"


def test_full_flow(client, db):
    assessment = make_assessment(db)
    headers, _ = auth_headers()
    attempt_id = _start(client, headers, assessment.id).json()["attempt"]["id"]

    resp = client.post(
        f"/api/v1/attempts/{attempt_id}/answers",
        json={"question_index": 0, "option_index": 0},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["answers"][0] == 0

    resp = client.post(f"/api/v1/attempts/{attempt_id}/flags", json={"question_index": 3}, headers=headers)
    assert resp.json()["flagged"] == [3]

    snapshot = {"time_spent_seconds": 120, "answers": [0, 1] + [None] * 8, "flagged": [3]}
    resp = client.post(f"/api/v1/attempts/{attempt_id}/heartbeat", json=snapshot, headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"saved": True, "remaining_seconds": 5400}

    final = {"time_spent_seconds": 600, "answers": correct_answers(), "flagged": []}
    resp = client.post(f"/api/v1/attempts/{attempt_id}/submit", json=final, headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["attempt"]["is_completed"] is True
    assert data["result"]["percentage"] == 100
    assert data["result"]["passed"] is True
    assert data["questions"][0]["correct_option_index"] == 0

    resp = client.post(f"/api/v1/attempts/{attempt_id}/reviewed", json={"question_index": 1}, headers=headers)
    assert resp.json()["reviewed_questions"] == [1]

    history = client.get("/api/v1/me/attempts", headers=headers).json()
    assert [h["id"] for h in history] == [attempt_id]
    assert history[0]["percentage"] == 100


def test_shuffled_draw_is_shown_and_reviewed_in_drawn_order(client, db):
    assessment = make_assessment(db, question_count=12, total_questions=6, shuffle_questions=True)
    headers, _ = auth_headers()
    data = _start(client, headers, assessment.id).json()
    drawn_ids = data["attempt"]["question_ids"]
    assert len(drawn_ids) == 6
    assert [q["id"] for q in data["questions"]] == drawn_ids

    # Correct answer for q{n} is (n - 1) % 4.
    answers = [(int(question_id[1:]) - 1) % 4 for question_id in drawn_ids]
    final = {"time_spent_seconds": 300, "answers": answers, "flagged": []}
    resp = client.post(f"/api/v1/attempts/{data['attempt']['id']}/submit", json=final, headers=headers)
    assert resp.status_code == 200, resp.text
    result = resp.json()
    assert result["result"]["percentage"] == 100
    assert [q["id"] for q in result["questions"]] == drawn_ids


def test_invalid_option_is_422(client, db):
    assessment = make_assessment(db)
    headers, _ = auth_headers()
    attempt_id = _start(client, headers, assessment.id).json()["attempt"]["id"]
    resp = client.post(
        f"/api/v1/attempts/{attempt_id}/answers",
        json={"question_index": 0, "option_index": 9},
        headers=headers,
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "INVALID_INDEX"


def test_cross_user_access_denied(client, db):
    assessment = make_assessment(db)
    owner, _ = auth_headers()
    intruder, _ = auth_headers()
    attempt_id = _start(client, owner, assessment.id).json()["attempt"]["id"]
    resp = client.get(f"/api/v1/attempts/{attempt_id}/result", headers=intruder)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "ACCESS_DENIED"


def test_late_submit_is_409_and_sealed(client, db, clock):
    assessment = make_assessment(db)
    headers, _ = auth_headers()
    attempt_id = _start(client, headers, assessment.id).json()["attempt"]["id"]
    clock.advance(minutes=100)

    final = {"time_spent_seconds": 6000, "answers": correct_answers(), "flagged": []}
    resp = client.post(f"/api/v1/attempts/{attempt_id}/submit", json=final, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "DEADLINE_PASSED"
    assert resp.json()["detail"]["attempt_id"] == attempt_id

    result = client.get(f"/api/v1/attempts/{attempt_id}/result", headers=headers).json()
    assert result["attempt"]["auto_submitted"] is True
    assert result["result"]["unanswered_count"] == 10


def test_force_submit_endpoint(client, db, clock):
    assessment = make_assessment(db)
    headers, _ = auth_headers()
    attempt_id = _start(client, headers, assessment.id).json()["attempt"]["id"]
    clock.advance(minutes=90)
    resp = client.post(f"/api/v1/attempts/{attempt_id}/force-submit", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["attempt"]["auto_submitted"] is True
    assert resp.json()["remaining_seconds"] == 0


def test_leaderboard_endpoint(client, db):
    assessment = make_assessment(db)
    headers, user_id = auth_headers(name="Top")
    attempt_id = _start(client, headers, assessment.id).json()["attempt"]["id"]
    final = {"time_spent_seconds": 300, "answers": correct_answers(), "flagged": []}
    client.post(f"/api/v1/attempts/{attempt_id}/submit", json=final, headers=headers)

    board = client.get(f"/api/v1/assessments/{assessment.id}/leaderboard", headers=headers).json()
    assert board[0]["user_id"] == user_id
    assert board[0]["user_name"] == "Top"


@pytest.mark.smoke
def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["database"] is True
