"""Demo: a trainer edits a training while a learner works through it.

Runs against the in-memory repositories using FastAPI TestClient.

Run with:
    python scripts/demo_progress_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app
from app.services import token_service

LEARNER = "demo-learner"
TRAINER = "demo-trainer"

QUIZ = {
    "title": "Phishing check",
    "passing_score": 50,
    "questions": [
        {
            "id": "q1",
            "question": "An email asks you to confirm your password. You:",
            "options": ["Reply with it", "Report it to security"],
            "correctAnswer": 1,
        },
        {
            "id": "q2",
            "question": "Hovering a link shows a lookalike domain. Safe?",
            "options": ["Yes", "No"],
            "correctAnswer": 1,
        },
    ],
}


def _headers(sub: str, roles: list[str] | None = None) -> dict[str, str]:
    token = token_service.create_access_token(sub=sub, roles=roles)
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    client = TestClient(app)
    learner = _headers(LEARNER)
    trainer = _headers(TRAINER, roles=["trainer"])

    # ── Step 1: trainer builds a course with one video training ─────
    r = client.post("/v1/content/courses", json={"title": "Security"}, headers=trainer)
    course_id = r.json()["id"]
    r = client.post(
        f"/v1/content/courses/{course_id}/trainings",
        json={"title": "Phishing", "video_duration": 300, "total_xp": 200},
        headers=trainer,
    )
    training_id = r.json()["id"]
    print(f"1. trainer created training       → {r.status_code}  ({training_id})")

    # ── Step 2: learner watches the whole video ─────────────────────
    r = client.post(
        f"/v1/trainings/{training_id}/watch-progress",
        json={"watched_seconds": 300},
        headers=learner,
    )
    body = r.json()
    print(
        f"2. learner watched 300s            → {r.status_code}  "
        f"progress={body['progress_pct']} completed={body['is_completed']}"
    )

    # ── Step 3: trainer adds a quiz; the learner is demoted ─────────
    r = client.put(
        f"/v1/content/trainings/{training_id}/quiz", json=QUIZ, headers=trainer
    )
    body = r.json()
    print(
        f"3. trainer added a quiz            → {r.status_code}  "
        f"affected={body['affected_learner_ids']} notified={body['notified']}"
    )

    r = client.get(f"/v1/trainings/{training_id}/progress", headers=learner)
    print(f"   learner progress now            → {r.json()['progress_pct']}")

    # ── Step 4: learner takes the quiz as displayed ─────────────────
    r = client.get(f"/v1/trainings/{training_id}/quiz", headers=learner)
    answers = {}
    for question in r.json()["questions"]:
        # The safe choice is always the second option authored above
        texts = [o["text"] for o in question["options"]]
        pick = "Report it to security" if "Reply with it" in texts else "No"
        answers[question["id"]] = texts.index(pick)

    r = client.post(
        f"/v1/trainings/{training_id}/quiz/submit",
        json={"answers": answers},
        headers=learner,
    )
    body = r.json()
    print(
        f"4. learner submitted the quiz      → {r.status_code}  "
        f"score={body['score']} xp={body['xp_earned']} "
        f"completed={body['is_completed']}"
    )

    # ── Step 5: summaries ───────────────────────────────────────────
    r = client.get(f"/v1/courses/{course_id}/progress", headers=learner)
    print(f"5. course progress                 → {r.json()['progress_pct']}")
    r = client.get("/v1/me/stats", headers=learner)
    stats = r.json()
    print(
        f"   learner stats                   → xp={stats['xp']} "
        f"level={stats['level']} diamonds={stats['diamonds']}"
    )


if __name__ == "__main__":
    main()
