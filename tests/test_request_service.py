from __future__ import annotations

import pytest

from event_requests.errors import ApiError
from event_requests.models import RequestKey, RequestType, new_request_record
from event_requests.store import store


def _notifications_for(user_id: str) -> list[dict]:
    return [n for n in store.notifications if n["user_id"] == user_id]


def test_self_tag_without_permission_creates_pending_request(actors, request_service):
    out = request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Dancer")

    assert out["direct_tag"] is False
    assert out["is_existing"] is False
    request = out["request"]
    assert request["status"] == "PENDING"
    assert request["role"] == "DANCER"
    assert request["sender_id"] == "u_dancer"
    assert request["target_user_id"] == "u_dancer"
    assert store.resources.user_roles(event_id="evt_1", user_id="u_dancer", video_id="vid_1") == set()

    incoming = [n for n in store.notifications if n["type"] == "INCOMING_REQUEST"]
    assert sorted(n["user_id"] for n in incoming) == ["u_creator", "u_member"]
    assert all(n["related_request_id"] == request["request_id"] for n in incoming)


def test_repeated_request_returns_the_same_pending_row(actors, request_service):
    first = request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Dancer")
    second = request_service.create_tagging_request(
        actors["dancer"], event_id="evt_1", video_id="vid_1", role="dancer"
    )

    assert second["is_existing"] is True
    assert second["request"]["request_id"] == first["request"]["request_id"]
    assert len(store.requests) == 1
    assert len([n for n in store.notifications if n["type"] == "INCOMING_REQUEST"]) == 2


def test_expect_new_rejects_duplicate_pending_request(actors, request_service):
    request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Dancer")

    with pytest.raises(ApiError) as exc_info:
        request_service.create_tagging_request(
            actors["dancer"],
            event_id="evt_1",
            video_id="vid_1",
            role="Dancer",
            expect_new=True,
        )
    assert exc_info.value.code == "REQUEST_ALREADY_PENDING"
    assert exc_info.value.http_status == 409


def test_team_member_tags_directly_and_notifies_target(actors, request_service):
    out = request_service.create_tagging_request(
        actors["member"],
        event_id="evt_1",
        section_id="sec_1",
        role="Judge",
        target_user_id="u_dancer",
    )

    assert out["direct_tag"] is True
    assert out["request"] is None
    assert out["applied_roles"] == ["JUDGE"]
    assert store.resources.user_roles(event_id="evt_1", user_id="u_dancer", section_id="sec_1") == {"JUDGE"}
    tagged = _notifications_for("u_dancer")
    assert len(tagged) == 1
    assert tagged[0]["type"] == "TAGGED"
    assert tagged[0]["message"].endswith("|eventId:evt_1|sectionId:sec_1")
    assert store.requests == {}


def test_direct_tag_is_idempotent(actors, request_service):
    kwargs = {"event_id": "evt_1", "video_id": "vid_1", "role": "Dancer", "target_user_id": "u_dancer"}
    request_service.create_tagging_request(actors["creator"], **kwargs)
    again = request_service.create_tagging_request(actors["creator"], **kwargs)

    assert again["direct_tag"] is True
    assert again["applied_roles"] == []
    assert len(_notifications_for("u_dancer")) == 1


def test_self_tag_by_editor_does_not_notify(actors, request_service):
    out = request_service.create_tagging_request(actors["creator"], event_id="evt_1", role="Organizer")

    assert out["applied_roles"] == ["ORGANIZER"]
    assert store.notifications == []


def test_winner_on_video_also_tags_dancer(actors, request_service):
    out = request_service.create_tagging_request(
        actors["creator"],
        event_id="evt_1",
        video_id="vid_1",
        role="Winner",
        target_user_id="u_dancer",
    )

    assert out["applied_roles"] == ["WINNER", "DANCER"]
    assert store.resources.user_roles(event_id="evt_1", user_id="u_dancer", video_id="vid_1") == {"WINNER", "DANCER"}


def test_winner_request_on_video_queues_companion_dancer_request(actors, request_service):
    out = request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Winner")

    assert out["request"]["role"] == "WINNER"
    assert [r["role"] for r in out["additional_requests"]] == ["DANCER"]
    assert len(store.requests) == 2


def test_winner_request_skips_companion_already_held(actors, request_service):
    store.resources.tag_user(event_id="evt_1", user_id="u_dancer", role="DANCER", video_id="vid_1")

    out = request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Winner")

    assert out["additional_requests"] == []
    assert len(store.requests) == 1


def test_winner_on_section_has_no_companion(actors, request_service):
    out = request_service.create_tagging_request(
        actors["creator"],
        event_id="evt_1",
        section_id="sec_1",
        role="Winner",
        target_user_id="u_dancer",
    )

    assert out["applied_roles"] == ["WINNER"]


def test_tagging_someone_else_without_permission_is_forbidden(actors, request_service):
    with pytest.raises(ApiError) as exc_info:
        request_service.create_tagging_request(
            actors["other"],
            event_id="evt_1",
            video_id="vid_1",
            role="Dancer",
            target_user_id="u_dancer",
        )
    assert exc_info.value.code == "AUTH_FORBIDDEN"
    assert store.requests == {}


def test_request_for_role_already_held_conflicts(actors, request_service):
    store.resources.tag_user(event_id="evt_1", user_id="u_dancer", role="DANCER", video_id="vid_1")

    with pytest.raises(ApiError) as exc_info:
        request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Dancer")
    assert exc_info.value.code == "TAG_ALREADY_APPLIED"
    assert exc_info.value.http_status == 409


@pytest.mark.parametrize(
    ("kwargs", "code", "status"),
    [
        ({"event_id": "evt_missing", "role": "Organizer"}, "EVENT_NOT_FOUND", 404),
        ({"event_id": "evt_2", "section_id": "sec_1", "role": "Judge"}, "SECTION_NOT_FOUND", 404),
        ({"event_id": "evt_2", "video_id": "vid_1", "role": "Dancer"}, "VIDEO_NOT_FOUND", 404),
        (
            {"event_id": "evt_1", "section_id": "sec_1", "video_id": "vid_1", "role": "Dancer"},
            "REQ_VALIDATION_FAILED",
            400,
        ),
        ({"event_id": "evt_1", "section_id": "sec_1", "role": "Dancer"}, "ROLE_INVALID", 400),
        ({"event_id": "evt_1", "video_id": "   ", "role": "Dancer"}, "REQ_VALIDATION_FAILED", 400),
        ({"event_id": "evt_1", "role": "Organizer", "target_user_id": "u_ghost"}, "USER_NOT_FOUND", 404),
    ],
)
def test_tagging_input_errors(actors, request_service, kwargs, code, status):
    with pytest.raises(ApiError) as exc_info:
        request_service.create_tagging_request(actors["dancer"], **kwargs)
    assert exc_info.value.code == code
    assert exc_info.value.http_status == status


def test_pending_tagging_requests_are_keyed_by_display_role(actors, request_service):
    request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Winner")
    request_service.create_tagging_request(actors["dancer"], event_id="evt_1", role="Team Member")

    on_video = request_service.pending_tagging_requests(actors["dancer"], event_id="evt_1", video_id="vid_1")
    assert set(on_video) == {"Winner", "Dancer"}
    assert on_video["Winner"]["status"] == "PENDING"

    filtered = request_service.pending_tagging_requests(
        actors["dancer"],
        event_id="evt_1",
        video_id="vid_1",
        roles=["Dancer"],
    )
    assert set(filtered) == {"Dancer"}

    on_event = request_service.pending_tagging_requests(actors["dancer"], event_id="evt_1")
    assert set(on_event) == {"Team Member"}

    assert request_service.pending_tagging_requests(actors["other"], event_id="evt_1", video_id="vid_1") == {}


def test_pending_tagging_requests_ignore_requests_made_for_others(actors, request_service):
    on_behalf = RequestKey(
        request_type=RequestType.TAGGING,
        sender_id="u_dancer",
        target_user_id="u_other",
        event_id="evt_1",
        video_id="vid_1",
        role="WINNER",
    )
    store.requests_repository.create(request=new_request_record(on_behalf))
    own = request_service.create_tagging_request(actors["dancer"], event_id="evt_1", video_id="vid_1", role="Dancer")

    pending = request_service.pending_tagging_requests(actors["dancer"], event_id="evt_1", video_id="vid_1")

    assert set(pending) == {"Dancer"}
    assert pending["Dancer"]["request_id"] == own["request"]["request_id"]


def test_remove_tag(actors, request_service):
    store.resources.tag_user(event_id="evt_1", user_id="u_dancer", role="DANCER", video_id="vid_1")

    out = request_service.remove_tag(
        actors["creator"],
        event_id="evt_1",
        video_id="vid_1",
        user_id="u_dancer",
        role="Dancer",
    )

    assert out == {"removed": True, "user_id": "u_dancer", "role": "DANCER"}
    assert store.resources.user_roles(event_id="evt_1", user_id="u_dancer", video_id="vid_1") == set()


def test_users_may_remove_their_own_tags(actors, request_service):
    store.resources.tag_user(event_id="evt_1", user_id="u_dancer", role="DANCER", video_id="vid_1")

    out = request_service.remove_tag(
        actors["dancer"], event_id="evt_1", video_id="vid_1", user_id="u_dancer", role="Dancer"
    )

    assert out["removed"] is True


def test_remove_tag_errors(actors, request_service):
    store.resources.tag_user(event_id="evt_1", user_id="u_dancer", role="DANCER", video_id="vid_1")

    with pytest.raises(ApiError) as forbidden_info:
        request_service.remove_tag(
            actors["other"], event_id="evt_1", video_id="vid_1", user_id="u_dancer", role="Dancer"
        )
    assert forbidden_info.value.code == "AUTH_FORBIDDEN"

    with pytest.raises(ApiError) as missing_info:
        request_service.remove_tag(
            actors["creator"], event_id="evt_1", video_id="vid_2", user_id="u_dancer", role="Dancer"
        )
    assert missing_info.value.code == "TAG_NOT_FOUND"
