import threading
from types import SimpleNamespace

from interactive_video import runtime
from interactive_video.repositories import rate_limit_repo
from interactive_video.services import rate_limit_service


def test_memory_limiter_blocks_within_window():
    events = {}
    lock = threading.Lock()

    assert rate_limit_service.check_rate_limit_memory("ip:1", 2, 60, 100.0, events=events, lock=lock) == (True, 0)
    assert rate_limit_service.check_rate_limit_memory("ip:1", 2, 60, 110.0, events=events, lock=lock) == (True, 0)
    assert rate_limit_service.check_rate_limit_memory("ip:1", 2, 60, 120.0, events=events, lock=lock) == (False, 40)
    assert rate_limit_service.check_rate_limit_memory("ip:2", 2, 60, 120.0, events=events, lock=lock) == (True, 0)
    assert rate_limit_service.check_rate_limit_memory("ip:1", 2, 60, 171.0, events=events, lock=lock) == (True, 0)


def test_firestore_limiter_counts_per_window(fake_db):
    kwargs = {
        "firestore_enabled": True,
        "db": fake_db,
        "firestore_module": runtime.firestore,
        "counter_collection": "rate_limit_counters",
    }

    assert rate_limit_service.check_rate_limit_firestore("uid:a", 2, 60, 600.0, **kwargs) == (True, 0)
    assert rate_limit_service.check_rate_limit_firestore("uid:a", 2, 60, 610.0, **kwargs) == (True, 0)
    assert rate_limit_service.check_rate_limit_firestore("uid:a", 2, 60, 615.0, **kwargs) == (False, 45)
    assert rate_limit_service.check_rate_limit_firestore("uid:a", 2, 60, 660.0, **kwargs) == (True, 0)

    counters = list(fake_db.docs("rate_limit_counters").values())
    assert sorted(counter["count"] for counter in counters) == [1, 2]
    assert all(counter["key"] == "uid:a" for counter in counters)


def test_firestore_limiter_disabled_returns_none(fake_db):
    result = rate_limit_service.check_rate_limit_firestore(
        "uid:a", 2, 60, 600.0,
        firestore_enabled=False,
        db=fake_db,
        firestore_module=runtime.firestore,
        counter_collection="rate_limit_counters",
    )

    assert result is None


def test_check_rate_limit_falls_back_to_memory():
    events = {}

    result = rate_limit_service.check_rate_limit(
        "ip:1",
        1,
        60,
        firestore_enabled=False,
        db=None,
        firestore_module=None,
        counter_collection="rate_limit_counters",
        in_memory_events=events,
        in_memory_lock=threading.Lock(),
        time_module=SimpleNamespace(time=lambda: 500.0),
    )

    assert result == (True, 0)
    assert events == {"ip:1": [500.0]}


def test_window_counter_id_is_stable():
    first = rate_limit_repo.window_counter_id("k", 60, 600)
    assert first == rate_limit_repo.window_counter_id("k", 60, 600.0)
    assert first != rate_limit_repo.window_counter_id("k", 60, 660)
    assert first != rate_limit_repo.window_counter_id("k", 120, 600)


def test_counter_document_records_window_and_expiry(fake_db):
    rate_limit_service.check_rate_limit_firestore(
        "video-token:uid-1", 5, 60, 630.0,
        firestore_enabled=True,
        db=fake_db,
        firestore_module=runtime.firestore,
        counter_collection="rate_limit_counters",
    )

    counter_id = rate_limit_repo.window_counter_id("video-token:uid-1", 60, 600)
    counter = fake_db.docs("rate_limit_counters")[counter_id]
    assert counter["count"] == 1
    assert counter["window_start"] == 600
    assert counter["window_seconds"] == 60
    assert counter["expires_at"] == 780
    assert counter["updated_at"] == 630.0
