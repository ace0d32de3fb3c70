from __future__ import annotations

import asyncio

from app.services.notifications import InMemoryNotificationSink, build_notice


def test_build_notice() -> None:
    notice = build_notice("l1", "t1", "Data Privacy")
    assert notice.title == "Training Updated: Data Privacy"
    assert notice.link == "/courses/training/t1"
    assert "Complete the new sections" in notice.body


def test_sink_records_every_notice_in_order() -> None:
    sink = InMemoryNotificationSink()
    sent = asyncio.run(sink.notify_training_updated(["l1", "l2"], "t1", "Privacy"))
    again = asyncio.run(sink.notify_training_updated(["l1", "l3"], "t1", "Privacy"))

    assert sent == 2
    assert again == 2
    assert [n.training_id for n in sink.notices_for("l1")] == ["t1", "t1"]
    assert sink.notices_for("l3")[0].title == "Training Updated: Privacy"


def test_same_learner_is_notified_per_training() -> None:
    sink = InMemoryNotificationSink()
    asyncio.run(sink.notify_training_updated(["l1"], "t1", "One"))
    asyncio.run(sink.notify_training_updated(["l1"], "t2", "Two"))
    assert len(sink.notices_for("l1")) == 2
