from __future__ import annotations

import pytest

from event_requests.errors import ApiError
from event_requests.models import RequestType
from event_requests.permissions import Actor, AuthLevel
from event_requests.store import store


def _types_for(user_id: str) -> list[str]:
    return [n["type"] for n in store.notifications if n["user_id"] == user_id]


# Team membership


def test_team_member_request_is_queued_and_approved(actors, request_service):
    out = request_service.create_team_member_request(actors["promoter"], event_id="evt_1")

    assert out["direct_apply"] is False
    request = out["request"]
    assert request["request_type"] == "TEAM_MEMBER"
    assert request_service.has_pending_team_member_request(actors["promoter"], event_id="evt_1") is True
    assert _types_for("u_creator") == ["INCOMING_REQUEST"]
    assert _types_for("u_member") == ["INCOMING_REQUEST"]

    request_service.approve_request(RequestType.TEAM_MEMBER, request["request_id"], actors["member"])

    assert store.resources.team_member_ids("evt_1") == ["u_member", "u_promoter"]
    assert request_service.has_pending_team_member_request(actors["promoter"], event_id="evt_1") is False
    assert _types_for("u_promoter") == ["REQUEST_APPROVED"]


def test_team_member_request_is_elevation_guarded(actors, request_service):
    moderator_out = request_service.create_team_member_request(actors["moderator"], event_id="evt_1")
    admin_out = request_service.create_team_member_request(actors["admin"], event_id="evt_1")

    assert moderator_out["direct_apply"] is False
    assert admin_out["direct_apply"] is False
    assert "u_admin" not in store.resources.team_member_ids("evt_1")


def test_super_admin_joins_team_directly(actors, request_service):
    out = request_service.create_team_member_request(actors["super"], event_id="evt_1")

    assert out == {"direct_apply": True, "request": None, "is_existing": False}
    assert "u_super" in store.resources.team_member_ids("evt_1")
    assert store.requests == {}


@pytest.mark.parametrize(
    ("nickname", "code", "status"),
    [
        ("dancer", "AUTH_FORBIDDEN", 403),
        ("creator", "REQ_VALIDATION_FAILED", 400),
        ("member", "ALREADY_TEAM_MEMBER", 409),
    ],
)
def test_team_member_request_rejections(actors, request_service, nickname, code, status):
    with pytest.raises(ApiError) as exc_info:
        request_service.create_team_member_request(actors[nickname], event_id="evt_1")
    assert exc_info.value.code == code
    assert exc_info.value.http_status == status


def test_add_and_remove_team_members(actors, request_service):
    added = request_service.add_team_member(actors["creator"], event_id="evt_1", user_id="u_dancer")
    assert added["added"] is True
    assert added["team_member_ids"] == ["u_member", "u_dancer"]

    removed = request_service.remove_team_member(actors["creator"], event_id="evt_1", user_id="u_member")
    assert removed["team_member_ids"] == ["u_dancer"]

    with pytest.raises(ApiError) as exc_info:
        request_service.remove_team_member(actors["creator"], event_id="evt_1", user_id="u_member")
    assert exc_info.value.code == "TEAM_MEMBER_NOT_FOUND"


def test_add_team_member_errors(actors, request_service):
    with pytest.raises(ApiError) as missing_user:
        request_service.add_team_member(actors["creator"], event_id="evt_1", user_id="u_ghost")
    assert missing_user.value.code == "USER_NOT_FOUND"

    with pytest.raises(ApiError) as not_allowed:
        request_service.add_team_member(actors["dancer"], event_id="evt_1", user_id="u_other")
    assert not_allowed.value.code == "AUTH_FORBIDDEN"


@pytest.mark.parametrize("level", [AuthLevel.CREATOR, AuthLevel.ADMIN, AuthLevel.SUPER_ADMIN])
def test_creator_cannot_be_removed_from_team(actors, request_service, level):
    actor = Actor(id="u_creator" if level == AuthLevel.CREATOR else "u_staff", auth_level=level)

    with pytest.raises(ApiError) as exc_info:
        request_service.remove_team_member(actor, event_id="evt_1", user_id="u_creator")
    assert exc_info.value.code == "CREATOR_PROTECTED"
    assert store.resources.get_event("evt_1").creator_id == "u_creator"


def test_team_member_cannot_remove_others(actors, request_service):
    store.resources.add_team_member("evt_1", "u_dancer")

    removed = request_service.remove_team_member(actors["member"], event_id="evt_1", user_id="u_dancer")
    assert removed["removed"] is True

    with pytest.raises(ApiError) as exc_info:
        request_service.remove_team_member(actors["other"], event_id="evt_1", user_id="u_member")
    assert exc_info.value.code == "AUTH_FORBIDDEN"


# Ownership


def test_ownership_request_notifies_creator_and_admins(actors, request_service):
    out = request_service.create_ownership_request(actors["promoter"], event_id="evt_1", message="I run it now")

    request = out["request"]
    assert request["request_type"] == "OWNERSHIP"
    assert request["message"] == "I run it now"
    recipients = sorted(n["user_id"] for n in store.notifications if n["type"] == "OWNERSHIP_REQUESTED")
    assert recipients == ["u_admin", "u_creator", "u_super"]
    assert request_service.has_pending_ownership_request(actors["promoter"], event_id="evt_1") is True


def test_team_member_cannot_approve_ownership(actors, request_service):
    request = request_service.create_ownership_request(actors["promoter"], event_id="evt_1")["request"]

    with pytest.raises(ApiError) as exc_info:
        request_service.approve_request(RequestType.OWNERSHIP, request["request_id"], actors["member"])
    assert exc_info.value.code == "AUTH_FORBIDDEN"


def test_ownership_approval_transfers_event(actors, request_service):
    request = request_service.create_ownership_request(actors["promoter"], event_id="evt_1")["request"]

    request_service.approve_request(
        RequestType.OWNERSHIP,
        request["request_id"],
        actors["creator"],
        add_old_creator_as_team_member=True,
    )

    event = store.resources.get_event("evt_1")
    assert event.creator_id == "u_promoter"
    assert set(event.team_member_ids) == {"u_member", "u_creator"}
    assert "OWNERSHIP_TRANSFERRED" in _types_for("u_creator")
    transferred = [n for n in store.notifications if n["type"] == "OWNERSHIP_TRANSFERRED"][0]
    assert transferred["message"].endswith("|eventId:evt_1")
    assert _types_for("u_promoter") == ["OWNERSHIP_REQUEST_APPROVED"]


def test_ownership_denial(actors, request_service):
    request = request_service.create_ownership_request(actors["promoter"], event_id="evt_1")["request"]

    request_service.deny_request(RequestType.OWNERSHIP, request["request_id"], actors["admin"])

    assert store.resources.get_event("evt_1").creator_id == "u_creator"
    assert _types_for("u_promoter") == ["OWNERSHIP_REQUEST_DENIED"]


def test_super_admin_claims_ownership_directly(actors, request_service):
    out = request_service.create_ownership_request(actors["super"], event_id="evt_1")

    assert out["direct_apply"] is True
    assert store.resources.get_event("evt_1").creator_id == "u_super"
    assert _types_for("u_creator") == ["OWNERSHIP_TRANSFERRED"]


def test_creator_cannot_request_own_event(actors, request_service):
    with pytest.raises(ApiError) as exc_info:
        request_service.create_ownership_request(actors["creator"], event_id="evt_1")
    assert exc_info.value.http_status == 400


# Auth level changes


def test_auth_level_request_lifecycle(actors, request_service):
    out = request_service.create_auth_level_change_request(
        actors["dancer"],
        requested_level=AuthLevel.CREATOR,
        message="I organise battles",
    )

    request = out["request"]
    assert request["current_level"] == 0
    assert request["requested_level"] == 1
    recipients = sorted(n["user_id"] for n in store.notifications if n["type"] == "INCOMING_REQUEST")
    assert recipients == ["u_admin", "u_super"]

    with pytest.raises(ApiError) as exc_info:
        request_service.approve_request(RequestType.AUTH_LEVEL_CHANGE, request["request_id"], actors["moderator"])
    assert exc_info.value.code == "AUTH_FORBIDDEN"

    request_service.approve_request(RequestType.AUTH_LEVEL_CHANGE, request["request_id"], actors["admin"])
    assert store.resources.get_user("u_dancer").auth_level == AuthLevel.CREATOR
    assert _types_for("u_dancer") == ["REQUEST_APPROVED"]


def test_admin_cannot_grant_above_own_level(actors, request_service):
    request = request_service.create_auth_level_change_request(
        actors["moderator"],
        requested_level=AuthLevel.SUPER_ADMIN,
        message="promote me",
    )["request"]

    with pytest.raises(ApiError):
        request_service.approve_request(RequestType.AUTH_LEVEL_CHANGE, request["request_id"], actors["admin"])

    request_service.approve_request(RequestType.AUTH_LEVEL_CHANGE, request["request_id"], actors["super"])
    assert store.resources.get_user("u_moderator").auth_level == AuthLevel.SUPER_ADMIN


def test_auth_level_request_reuses_pending_row_regardless_of_level(actors, request_service):
    first = request_service.create_auth_level_change_request(actors["dancer"], requested_level=1, message="a")
    second = request_service.create_auth_level_change_request(actors["dancer"], requested_level=2, message="b")

    assert second["is_existing"] is True
    assert second["request"]["request_id"] == first["request"]["request_id"]


@pytest.mark.parametrize(
    ("kwargs", "code"),
    [
        ({"requested_level": 1, "message": "  "}, "REQ_VALIDATION_FAILED"),
        ({"requested_level": 0, "message": "same"}, "REQ_VALIDATION_FAILED"),
        ({"requested_level": 7, "message": "too high"}, "REQ_VALIDATION_FAILED"),
        ({"requested_level": 1, "message": "x", "target_user_id": "u_ghost"}, "USER_NOT_FOUND"),
    ],
)
def test_auth_level_request_validation(actors, request_service, kwargs, code):
    with pytest.raises(ApiError) as exc_info:
        request_service.create_auth_level_change_request(actors["dancer"], **kwargs)
    assert exc_info.value.code == code
