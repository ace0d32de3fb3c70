"""Tests for the trainer content endpoints."""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.repos.bundle import Repos
from app.services.notifications import InMemoryNotificationSink
from tests.conftest import auth, mint_token, seed_course, seed_training

QUIZ = {
    "title": "Check",
    "passing_score": 50,
    "questions": [
        {
            "id": "q1",
            "question": "Which is a strong password?",
            "options": ["123456", "correct-horse-battery-staple"],
            "correctAnswer": 1,
        }
    ],
}


def _watch(client: TestClient, training_id: str, learner: str, seconds: int) -> None:
    resp = client.post(
        f"/v1/trainings/{training_id}/watch-progress",
        json={"watched_seconds": seconds},
        headers=auth(mint_token(learner)),
    )
    assert resp.status_code == 200


# ---- 401/403 ----


def test_content_requires_token(client: TestClient) -> None:
    resp = client.post("/v1/content/courses", json={"title": "x"})
    assert resp.status_code == 401


def test_learner_cannot_edit_content(client: TestClient, token: str) -> None:
    resp = client.post("/v1/content/courses", json={"title": "x"}, headers=auth(token))
    assert resp.status_code == 403


def test_admin_can_edit_content(client: TestClient) -> None:
    resp = client.post(
        "/v1/content/courses",
        json={"title": "Ethics"},
        headers=auth(mint_token("admin-1", roles=["admin"])),
    )
    assert resp.status_code == 201


# ---- courses and trainings ----


def test_create_course_and_training(client: TestClient, trainer_token: str) -> None:
    h = auth(trainer_token)
    course = client.post("/v1/content/courses", json={"title": "Security"}, headers=h)
    assert course.status_code == 201
    course_id = course.json()["id"]

    resp = client.post(
        f"/v1/content/courses/{course_id}/trainings",
        json={"title": "Phishing", "video_duration": 300, "total_xp": 150},
        headers=h,
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["course_id"] == course_id
    assert body["has_quiz"] is False
    assert body["sub_units"] == []


def test_blank_title_is_400(client: TestClient, trainer_token: str) -> None:
    resp = client.post(
        "/v1/content/courses", json={"title": "  "}, headers=auth(trainer_token)
    )
    assert resp.status_code == 400


def test_training_for_unknown_course_is_404(
    client: TestClient, trainer_token: str
) -> None:
    resp = client.post(
        "/v1/content/courses/missing/trainings",
        json={"title": "Orphan"},
        headers=auth(trainer_token),
    )
    assert resp.status_code == 404


def test_unpublishing_lifts_course_progress(
    client: TestClient, trainer_token: str, app_repos: Repos
) -> None:
    course = seed_course(app_repos)
    done = seed_training(app_repos, course, video_duration=100)
    other = seed_training(app_repos, course, title="Second")
    _watch(client, done.id, "learner-1", 100)

    resp = client.patch(
        f"/v1/content/trainings/{other.id}/publish",
        json={"is_published": False},
        headers=auth(trainer_token),
    )

    assert resp.status_code == 200
    assert resp.json()["is_published"] is False
    cp = client.get(
        f"/v1/courses/{course.id}/progress", headers=auth(mint_token("learner-1"))
    ).json()
    assert cp["is_completed"] is True


# ---- structural edits ----


def test_adding_quiz_demotes_and_notifies(
    client: TestClient,
    trainer_token: str,
    app_repos: Repos,
    app_notifier: InMemoryNotificationSink,
) -> None:
    course = seed_course(app_repos)
    training = seed_training(app_repos, course, video_duration=100)
    _watch(client, training.id, "learner-1", 100)
    _watch(client, training.id, "learner-2", 50)

    resp = client.put(
        f"/v1/content/trainings/{training.id}/quiz",
        json=QUIZ,
        headers=auth(trainer_token),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["recalculated"] is True
    assert body["processed"] == 2
    assert body["affected_learner_ids"] == ["learner-1"]
    assert body["failed_learner_ids"] == []
    assert body["notified"] == 1
    assert body["training"]["has_quiz"] is True
    assert len(app_notifier.notices_for("learner-1")) == 1
    assert app_notifier.notices_for("learner-2") == []

    tp = client.get(
        f"/v1/trainings/{training.id}/progress", headers=auth(mint_token("learner-1"))
    ).json()
    assert tp["progress_pct"] == 50
    assert tp["is_completed"] is False
    assert tp["completed_at"] is None


def test_editing_quiz_does_not_recalculate(
    client: TestClient, trainer_token: str, app_repos: Repos
) -> None:
    course = seed_course(app_repos)
    training = seed_training(app_repos, course)
    url = f"/v1/content/trainings/{training.id}/quiz"
    client.put(url, json=QUIZ, headers=auth(trainer_token))

    resp = client.put(url, json={**QUIZ, "passing_score": 90}, headers=auth(trainer_token))

    assert resp.status_code == 200
    assert resp.json()["recalculated"] is False


def test_quiz_without_questions_is_422(
    client: TestClient, trainer_token: str, app_repos: Repos
) -> None:
    course = seed_course(app_repos)
    training = seed_training(app_repos, course)
    resp = client.put(
        f"/v1/content/trainings/{training.id}/quiz",
        json={"questions": []},
        headers=auth(trainer_token),
    )
    assert resp.status_code == 422


def test_out_of_range_passing_score_is_400(
    client: TestClient, trainer_token: str, app_repos: Repos
) -> None:
    course = seed_course(app_repos)
    training = seed_training(app_repos, course)
    resp = client.put(
        f"/v1/content/trainings/{training.id}/quiz",
        json={**QUIZ, "passing_score": 120},
        headers=auth(trainer_token),
    )
    assert resp.status_code == 400


def test_delete_missing_quiz_is_404(
    client: TestClient, trainer_token: str, app_repos: Repos
) -> None:
    course = seed_course(app_repos)
    training = seed_training(app_repos, course)
    resp = client.delete(
        f"/v1/content/trainings/{training.id}/quiz", headers=auth(trainer_token)
    )
    assert resp.status_code == 404


def test_sub_unit_lifecycle(
    client: TestClient, trainer_token: str, app_repos: Repos
) -> None:
    course = seed_course(app_repos)
    training = seed_training(app_repos, course, video_duration=100)
    _watch(client, training.id, "learner-1", 100)
    h = auth(trainer_token)

    added = client.post(
        f"/v1/content/trainings/{training.id}/sub-units",
        json={"title": "Case study", "video_duration": 60},
        headers=h,
    )
    assert added.status_code == 201
    sub_unit_id = added.json()["sub_unit_id"]
    assert added.json()["affected_learner_ids"] == ["learner-1"]

    quiz = client.put(f"/v1/content/sub-units/{sub_unit_id}/quiz", json=QUIZ, headers=h)
    assert quiz.status_code == 200
    assert quiz.json()["training"]["sub_units"][0]["has_quiz"] is True

    removed_quiz = client.delete(f"/v1/content/sub-units/{sub_unit_id}/quiz", headers=h)
    assert removed_quiz.status_code == 200

    removed = client.delete(f"/v1/content/sub-units/{sub_unit_id}", headers=h)
    assert removed.status_code == 200
    assert removed.json()["training"]["sub_units"] == []

    tp = client.get(
        f"/v1/trainings/{training.id}/progress", headers=auth(mint_token("learner-1"))
    ).json()
    assert tp["is_completed"] is True


def test_manual_recalculate(
    client: TestClient, trainer_token: str, app_repos: Repos
) -> None:
    course = seed_course(app_repos)
    training = seed_training(app_repos, course, video_duration=100)
    _watch(client, training.id, "learner-1", 30)

    resp = client.post(
        f"/v1/content/trainings/{training.id}/recalculate", headers=auth(trainer_token)
    )

    assert resp.status_code == 200
    assert resp.json()["processed"] == 1
    assert resp.json()["affected_learner_ids"] == []
