from __future__ import annotations

import asyncio

from brain.models import ComplaintStatus

POTHOLE = "There is a dangerous pothole on Main Street near the bus stop."


def test_drain_skips_while_breaker_cooling_down(make_container, make_input, scripted, monotonic):
    endpoint = scripted(503)
    container = make_container(endpoint, monotonic=monotonic)
    result = asyncio.run(container.machine.run(make_input(POTHOLE)))
    assert result.complaint.status == ComplaintStatus.QUEUED

    summary = asyncio.run(container.retry_driver.drain_once())

    assert summary == {"submitted": [], "failed": [], "queued": [], "skipped": []}
    assert len(endpoint.requests) == 3
    assert result.complaint.id in container.submitter.queue


def test_drain_delivers_after_cooldown(make_container, make_input, scripted, monotonic):
    endpoint = scripted(503, 503, 503, 201)
    container = make_container(endpoint, monotonic=monotonic)
    cid = asyncio.run(container.machine.run(make_input(POTHOLE))).complaint.id

    monotonic.now += 300
    summary = asyncio.run(container.retry_driver.drain_once())

    assert summary["submitted"] == [cid]
    stored = container.repository.get(cid)
    assert stored.status == ComplaintStatus.SUBMITTED
    assert [h["to"] for h in stored.history][-2:] == ["QUEUED", "SUBMITTED"]
    assert len(container.submitter.queue) == 0
    assert [r.attempt for r in container.audit_log.list_for(cid)] == [1, 2, 3, 4]


def test_drain_keeps_still_failing_complaints_queued(make_container, make_input, scripted, monotonic):
    container = make_container(scripted(503), monotonic=monotonic)
    cid = asyncio.run(container.machine.run(make_input(POTHOLE))).complaint.id

    monotonic.now += 300
    summary = asyncio.run(container.retry_driver.drain_once())

    assert summary["queued"] == [cid]
    assert cid in container.submitter.queue
    assert container.repository.get(cid).status == ComplaintStatus.QUEUED


def test_drain_marks_permanent_rejection_failed(make_container, make_input, scripted, monotonic):
    container = make_container(scripted(503, 503, 503, 400), monotonic=monotonic)
    cid = asyncio.run(container.machine.run(make_input(POTHOLE))).complaint.id

    monotonic.now += 300
    summary = asyncio.run(container.retry_driver.drain_once())

    assert summary["failed"] == [cid]
    assert container.repository.get(cid).status == ComplaintStatus.FAILED


def test_unknown_ids_are_skipped(container):
    container.submitter.queue.push("ghost")

    summary = asyncio.run(container.retry_driver.drain_once())

    assert summary["skipped"] == ["ghost"]


def test_recover_queue_restores_from_repository(make_container, make_input, scripted):
    container = make_container(scripted(503))
    cid = asyncio.run(container.machine.run(make_input(POTHOLE))).complaint.id
    container.submitter.queue.pop_all()

    assert container.retry_driver.recover_queue() == 1
    assert cid in container.submitter.queue
    assert container.retry_driver.recover_queue() == 0
