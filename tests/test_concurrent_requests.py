from __future__ import annotations

import threading

from event_requests.errors import ApiError
from event_requests.models import RequestType
from event_requests.store import store


def _run_in_threads(count: int, target) -> list[object]:
    barrier = threading.Barrier(count)
    results: list[object] = [None] * count

    def _worker(idx: int) -> None:
        barrier.wait()
        try:
            results[idx] = target()
        except ApiError as exc:
            results[idx] = exc

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results


def test_concurrent_creates_yield_one_pending_request(actors, request_service):
    results = _run_in_threads(
        8,
        lambda: request_service.create_tagging_request(
            actors["dancer"],
            event_id="evt_1",
            video_id="vid_1",
            role="Dancer",
        ),
    )

    request_ids = {r["request"]["request_id"] for r in results}
    assert len(request_ids) == 1
    assert len(store.requests) == 1
    assert sum(1 for r in results if not r["is_existing"]) == 1
    assert len([n for n in store.notifications if n["type"] == "INCOMING_REQUEST"]) == 2


def test_concurrent_decisions_have_exactly_one_winner(actors, request_service):
    request = request_service.create_tagging_request(
        actors["dancer"],
        event_id="evt_1",
        video_id="vid_1",
        role="Dancer",
    )["request"]

    calls = iter(
        [
            lambda: request_service.approve_request(RequestType.TAGGING, request["request_id"], actors["creator"]),
            lambda: request_service.deny_request(RequestType.TAGGING, request["request_id"], actors["member"]),
            lambda: request_service.cancel_request(RequestType.TAGGING, request["request_id"], actors["dancer"]),
            lambda: request_service.approve_request(RequestType.TAGGING, request["request_id"], actors["admin"]),
        ]
    )
    lock = threading.Lock()

    def _next_call():
        with lock:
            call = next(calls)
        return call()

    results = _run_in_threads(4, _next_call)

    winners = [r for r in results if isinstance(r, dict)]
    losers = [r for r in results if isinstance(r, ApiError)]
    assert len(winners) == 1
    assert len(losers) == 3
    assert {e.code for e in losers} == {"REQUEST_STATE_INVALID"}
    assert store.requests[request["request_id"]]["status"] == winners[0]["status"]
    decision_notes = [n for n in store.notifications if n["type"] in ("REQUEST_APPROVED", "REQUEST_DENIED")]
    assert len(decision_notes) == (0 if winners[0]["status"] == "CANCELLED" else 1)
