from __future__ import annotations

from event_requests.models import NotificationType
from event_requests.store import store


def _seed_tagged(notification_service) -> dict:
    return notification_service.notify_tagged(
        user_id="u_dancer",
        event_id="evt_1",
        role="JUDGE",
        tagged_by="u_creator",
        section_id="sec_1",
    )


def test_list_count_and_dismiss(client, actors, notification_service):
    dancer = client.as_actor(actors["dancer"])
    first = _seed_tagged(notification_service)
    _seed_tagged(notification_service)

    listed = dancer.get("/api/v1/notifications")
    assert listed.status_code == 200
    assert listed.json()["data"]["total"] == 2

    assert dancer.get("/api/v1/notifications/count").json()["data"] == {"count": 2}

    marked = dancer.post(f"/api/v1/notifications/{first['notification_id']}/mark-old")
    assert marked.status_code == 200
    assert marked.json()["data"]["is_old"] is True
    assert dancer.get("/api/v1/notifications", params={"is_old": "false"}).json()["data"]["total"] == 1

    cleared = dancer.post("/api/v1/notifications/mark-all-old")
    assert cleared.json()["data"] == {"updated": 1}
    assert dancer.get("/api/v1/notifications/count").json()["data"] == {"count": 0}


def test_limit_parameter(client, actors, notification_service):
    for _ in range(3):
        _seed_tagged(notification_service)

    resp = client.as_actor(actors["dancer"]).get("/api/v1/notifications", params={"limit": 2})
    assert resp.json()["data"]["total"] == 2

    bad = client.as_actor(actors["dancer"]).get("/api/v1/notifications", params={"limit": 0})
    assert bad.status_code == 400


def test_target_url_is_cacheable_and_private(client, actors, notification_service):
    note = _seed_tagged(notification_service)

    resp = client.as_actor(actors["dancer"]).get(f"/api/v1/notifications/{note['notification_id']}/url")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"url": "/events/evt_1/sections/sec_1"}
    assert resp.headers["Cache-Control"] == "private, max-age=30"


def test_target_url_null_when_unresolvable(client, actors, notification_service):
    note = notification_service.notify(
        user_id="u_dancer",
        notification_type=NotificationType.TAGGED,
        title="You were tagged",
        message="legacy message without a tail",
    )

    resp = client.as_actor(actors["dancer"]).get(f"/api/v1/notifications/{note['notification_id']}/url")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"url": None}


def test_other_users_notifications_are_hidden(client, actors, notification_service):
    note = _seed_tagged(notification_service)
    other = client.as_actor(actors["other"])

    assert other.get(f"/api/v1/notifications/{note['notification_id']}/url").status_code == 404
    missing = other.post(f"/api/v1/notifications/{note['notification_id']}/mark-old")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"
    assert store.notifications[0]["is_old"] is False
