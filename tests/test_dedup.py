from __future__ import annotations

import threading
from datetime import datetime, timedelta

from brain.dedup import DedupGate, DuplicateWindow, Fingerprint, fingerprint_for, location_bucket
from brain.models import Complaint, GeoLocation, InputType
from brain.utils_text import normalize, token_set
from core import config
from services.container import build_container


def _fp(cid: str, text: str, citizen: str = "citizen-1", bucket: str = "") -> Fingerprint:
    norm = normalize(text)
    return Fingerprint(
        complaint_id=cid,
        digest=str(hash(norm)),
        tokens=token_set(norm),
        citizen_key=citizen,
        location_bucket=bucket,
    )


def test_same_text_within_window_is_duplicate(clock):
    gate = DedupGate(DuplicateWindow(clock=clock))

    first = gate.check(_fp("a", "Trash has not been collected on Pine Road"))
    second = gate.check(_fp("b", "Trash has not been collected on Pine Road!"))

    assert first.is_duplicate is False
    assert second.is_duplicate is True
    assert second.original_id == "a"


def test_near_identical_text_crosses_threshold(clock):
    gate = DedupGate(DuplicateWindow(clock=clock))
    gate.check(_fp("a", "the street light outside number twelve oak lane is flickering all night"))

    # 토큰 13개 중 12개 공유 (Jaccard 0.92)
    result = gate.check(
        _fp("b", "the street light outside number twelve oak lane is flickering all night again")
    )

    assert result.is_duplicate is True


def test_different_issue_is_not_duplicate(clock):
    gate = DedupGate(DuplicateWindow(clock=clock))
    gate.check(_fp("a", "Pothole on Pine Road"))

    assert gate.check(_fp("b", "Broken water pipe on Pine Road")).is_duplicate is False


def test_scope_is_per_citizen_and_location(clock):
    gate = DedupGate(DuplicateWindow(clock=clock))
    gate.check(_fp("a", "Pothole on Pine Road", citizen="alice"))

    assert gate.check(_fp("b", "Pothole on Pine Road", citizen="bob")).is_duplicate is False
    assert gate.check(_fp("c", "Pothole on Pine Road", citizen="alice", bucket="1.00,2.00")).is_duplicate is False


def test_entries_expire_after_window(clock):
    store = DuplicateWindow(clock=clock)
    gate = DedupGate(store, window=timedelta(hours=24))
    gate.check(_fp("a", "Pothole on Pine Road"))

    clock.advance(hours=24, seconds=1)

    assert gate.check(_fp("b", "Pothole on Pine Road")).is_duplicate is False
    assert len(store) == 1


def test_complaint_never_matches_itself(clock):
    gate = DedupGate(DuplicateWindow(clock=clock))
    gate.check(_fp("a", "Pothole on Pine Road"))

    assert gate.check(_fp("a", "Pothole on Pine Road")).is_duplicate is False


def test_concurrent_submissions_admit_exactly_one(clock):
    gate = DedupGate(DuplicateWindow(clock=clock))
    results = []
    barrier = threading.Barrier(8)

    def worker(i: int) -> None:
        barrier.wait()
        results.append(gate.check(_fp(f"c{i}", "Overflowing bins behind the library")))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for r in results if not r.is_duplicate) == 1


def test_location_bucket_rounds_coordinates():
    assert location_bucket(GeoLocation(lat=40.71234, lon=-74.00601)) == "40.71,-74.01"
    assert location_bucket(GeoLocation(address="12 Oak Lane, Springfield")) == "12 oak lane springfield"
    assert location_bucket(None) == ""


def test_fingerprint_uses_processed_text():
    complaint = Complaint(
        id="x",
        input_type=InputType.TEXT,
        original_text="  Pothole   on Pine Road ",
        created_at=datetime(2026, 10, 1),
        citizen_id=" citizen-9 ",
        processed_text="Pothole on Pine Road",
    )

    fp = fingerprint_for(complaint)

    assert fp.tokens == frozenset({"pothole", "on", "pine", "road"})
    assert fp.citizen_key == "citizen-9"


def test_injected_empty_store_is_kept(clock):
    store = DuplicateWindow(threshold=0.5, clock=clock)

    gate = DedupGate(store)

    assert len(store) == 0
    assert gate.store is store
    assert gate.store.threshold == 0.5


def test_explicit_zero_window_expires_immediately(clock):
    gate = DedupGate(DuplicateWindow(clock=clock), window=timedelta(hours=24))
    gate.check(_fp("a", "Pothole on Pine Road"), window=timedelta(0))

    assert gate.check(_fp("b", "Pothole on Pine Road")).is_duplicate is False


def test_configured_threshold_reaches_container(monkeypatch, directory):
    monkeypatch.setattr(config, "DEDUP_SIMILARITY_THRESHOLD", 0.5)
    monkeypatch.setattr(config, "DEDUP_WINDOW_HOURS", 2.0)

    container = build_container(directory=directory)

    assert container.machine.dedup.store.threshold == 0.5
    assert container.machine.dedup.window == timedelta(hours=2)
