from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from event_requests.direct_apply import Action, Decision, decide
from event_requests.errors import (
    ApiError,
    already_exists,
    forbidden,
    internal_error,
    invalid_state,
    not_found,
    validation_failed,
)
from event_requests.models import (
    ALLOWED_REQUEST_TRANSITIONS,
    NotificationType,
    RequestKey,
    RequestStatus,
    RequestType,
    new_request_record,
)
from event_requests.notification_service import NotificationService
from event_requests.permissions import (
    Actor,
    AuthLevel,
    ResourceContext,
    can_approve_auth_level_change,
    can_request_team_membership,
    can_transfer_ownership,
    can_update_event,
    can_update_section,
)
from event_requests.repositories.requests import PendingRequestConflict
from event_requests.repositories.resources import EventRecord
from event_requests.roles import DANCER, WINNER, scope_for, to_display_role, to_storage_role, validate_role

logger = logging.getLogger(__name__)


def _clean_id(value: str | None, name: str) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned:
        raise validation_failed(f"{name} must not be empty")
    return cleaned


class RequestService:
    """Direct-apply-or-queue decisions and the request state machine."""

    def __init__(self, store: Any, notifications: NotificationService | None = None) -> None:
        self._store = store
        self._requests = store.requests_repository
        self._resources = store.resources
        self._notifications = notifications or NotificationService(store)

    # Lookups and authorization helpers

    def _require_event(self, event_id: str | None) -> EventRecord:
        cleaned = _clean_id(event_id, "event_id")
        if cleaned is None:
            raise validation_failed("event_id is required")
        event = self._resources.get_event(cleaned)
        if event is None:
            raise not_found("EVENT_NOT_FOUND", "event not found")
        return event

    def _require_scope(self, event: EventRecord, *, section_id: str | None, video_id: str | None) -> None:
        if section_id and video_id:
            raise validation_failed("only one of video_id or section_id may be set")
        if section_id:
            section = self._resources.get_section(section_id)
            if section is None or section.event_id != event.event_id:
                raise not_found("SECTION_NOT_FOUND", "section not found in event")
        if video_id:
            video = self._resources.get_video(video_id)
            if video is None or video.event_id != event.event_id:
                raise not_found("VIDEO_NOT_FOUND", "video not found in event")

    @staticmethod
    def _context(event: EventRecord, actor_id: str) -> ResourceContext:
        member = actor_id in event.team_member_ids
        return ResourceContext(creator_id=event.creator_id, is_team_member=member, is_event_team_member=member)

    def _can_update(
        self,
        actor: Actor,
        event: EventRecord,
        *,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> bool:
        ctx = self._context(event, actor.id)
        if section_id or video_id:
            return can_update_section(actor.auth_level, ctx, actor.id)
        return can_update_event(actor.auth_level, ctx, actor.id)

    def _approver_ids(self, event: EventRecord, *, exclude: str) -> list[str]:
        return [x for x in (event.creator_id, *event.team_member_ids) if x and x != exclude]

    def _admin_ids(self, *, exclude: str) -> list[str]:
        return [x for x in self._resources.user_ids_with_min_auth_level(AuthLevel.ADMIN) if x != exclude]

    def _get_or_create_pending(
        self,
        key: RequestKey,
        *,
        expect_new: bool = False,
        **extra: Any,
    ) -> tuple[dict[str, Any], bool]:
        existing = self._requests.find_pending(key)
        if existing is None:
            try:
                created = self._requests.create(request=new_request_record(key, **extra))
            except PendingRequestConflict as conflict:
                existing = conflict.existing or self._requests.find_pending(key)
                if existing is None:
                    raise internal_error("pending request conflict could not be resolved") from conflict
            else:
                logger.info(
                    "request_created request_id=%s type=%s sender_id=%s event_id=%s",
                    created["request_id"],
                    key.request_type.value,
                    key.sender_id,
                    key.event_id,
                )
                return created, True
        if expect_new:
            raise already_exists("REQUEST_ALREADY_PENDING", "a pending request already exists")
        logger.info("request_reused request_id=%s type=%s", existing["request_id"], key.request_type.value)
        return existing, False

    def _load(self, request_type: RequestType, request_id: str) -> dict[str, Any]:
        row = self._requests.get(request_id=request_id)
        if row is None or row["request_type"] != request_type.value:
            raise not_found("REQUEST_NOT_FOUND", "request not found")
        return row

    @staticmethod
    def _require_transition(row: dict[str, Any], new_status: RequestStatus) -> None:
        if new_status.value not in ALLOWED_REQUEST_TRANSITIONS.get(row["status"], set()):
            raise invalid_state(f"request is {row['status']}, cannot become {new_status.value}")

    def _transition(
        self,
        row: dict[str, Any],
        new_status: RequestStatus,
        *,
        responder_id: str,
        response_message: str | None = None,
        apply: Callable[[dict[str, Any]], Any] | None = None,
    ) -> dict[str, Any]:
        updated = self._requests.transition(
            request_id=row["request_id"],
            new_status=new_status.value,
            responder_id=responder_id,
            response_message=response_message,
            apply=apply,
        )
        if updated is None:
            logger.warning(
                "request_transition_lost request_id=%s target_status=%s",
                row["request_id"],
                new_status.value,
            )
            raise invalid_state("request is no longer PENDING")
        logger.info(
            "request_transitioned request_id=%s status=%s responder_id=%s",
            updated["request_id"],
            new_status.value,
            responder_id,
        )
        return updated

    def _may_decide(self, row: dict[str, Any], actor: Actor) -> bool:
        request_type = RequestType(row["request_type"])
        if request_type == RequestType.AUTH_LEVEL_CHANGE:
            return can_approve_auth_level_change(actor.auth_level) and actor.auth_level >= int(
                row.get("requested_level") or 0
            )
        event = self._resources.get_event(row.get("event_id") or "")
        if event is None:
            return False
        ctx = self._context(event, actor.id)
        if request_type == RequestType.OWNERSHIP:
            return can_transfer_ownership(actor.auth_level, ctx, actor.id)
        if request_type == RequestType.TAGGING:
            return self._can_update(actor, event, section_id=row.get("section_id"), video_id=row.get("video_id"))
        return can_update_event(actor.auth_level, ctx, actor.id)

    def _authorize_decision(self, row: dict[str, Any], approver: Actor) -> None:
        request_type = RequestType(row["request_type"])
        if request_type == RequestType.AUTH_LEVEL_CHANGE:
            if self._resources.get_user(row["target_user_id"]) is None:
                raise not_found("USER_NOT_FOUND", "user not found")
        else:
            self._require_event(row.get("event_id"))
        if not self._may_decide(row, approver):
            raise forbidden("not allowed to decide this request")

    # Tagging

    def can_update_resource(
        self,
        actor: Actor,
        *,
        event_id: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> bool:
        event = self._require_event(event_id)
        self._require_scope(event, section_id=section_id, video_id=video_id)
        return self._can_update(actor, event, section_id=section_id, video_id=video_id)

    def _apply_tags(
        self,
        *,
        tagged_by: str,
        event_id: str,
        user_id: str,
        roles: list[str],
        section_id: str | None,
        video_id: str | None,
        notify_target: bool,
    ) -> list[str]:
        added = [
            role
            for role in roles
            if self._resources.tag_user(
                event_id=event_id,
                user_id=user_id,
                role=role,
                section_id=section_id,
                video_id=video_id,
            )
        ]
        if added and notify_target:
            self._notifications.notify_tagged(
                user_id=user_id,
                event_id=event_id,
                role=roles[0],
                tagged_by=tagged_by,
                section_id=section_id,
                video_id=video_id,
            )
        return added

    def _notify_tagging_request(self, request: dict[str, Any], event: EventRecord) -> None:
        resource = self._notifications.describe_resource(
            event.event_id,
            section_id=request.get("section_id"),
            video_id=request.get("video_id"),
        )
        sender = self._resources.display_name(request["sender_id"])
        text = f'{sender} requested "{to_display_role(request["role"])}" for {resource}'
        if request["target_user_id"] != request["sender_id"]:
            text += f" on behalf of {self._resources.display_name(request['target_user_id'])}"
        self._notifications.notify_many(
            self._approver_ids(event, exclude=request["sender_id"]),
            notification_type=NotificationType.INCOMING_REQUEST,
            title="New Request",
            message=text,
            related_request_type=RequestType.TAGGING,
            related_request_id=request["request_id"],
        )

    def create_tagging_request(
        self,
        actor: Actor,
        *,
        event_id: str,
        role: str,
        video_id: str | None = None,
        section_id: str | None = None,
        target_user_id: str | None = None,
        expect_new: bool = False,
    ) -> dict[str, Any]:
        video_id = _clean_id(video_id, "video_id")
        section_id = _clean_id(section_id, "section_id")
        event = self._require_event(event_id)
        self._require_scope(event, section_id=section_id, video_id=video_id)
        stored_role = validate_role(role, scope_for(section_id=section_id, video_id=video_id))
        target = _clean_id(target_user_id, "target_user_id") or actor.id
        if target != actor.id and self._resources.get_user(target) is None:
            raise not_found("USER_NOT_FOUND", "target user not found")

        roles = [stored_role]
        if stored_role == WINNER and video_id:
            roles.append(DANCER)

        can_update = self._can_update(actor, event, section_id=section_id, video_id=video_id)
        decision = decide(Action.TAG, actor, can_update=can_update, target_user_id=target)
        if decision == Decision.DENY:
            raise forbidden("not allowed to tag other users on this resource")
        if decision == Decision.DIRECT_APPLY:
            added = self._apply_tags(
                tagged_by=actor.id,
                event_id=event.event_id,
                user_id=target,
                roles=roles,
                section_id=section_id,
                video_id=video_id,
                notify_target=target != actor.id,
            )
            logger.info(
                "tag_direct_applied event_id=%s user_id=%s roles=%s added=%s",
                event.event_id,
                target,
                ",".join(roles),
                ",".join(added),
            )
            return {
                "direct_tag": True,
                "request": None,
                "is_existing": False,
                "additional_requests": [],
                "applied_roles": added,
            }

        held = self._resources.user_roles(
            event_id=event.event_id,
            user_id=target,
            section_id=section_id,
            video_id=video_id,
        )
        if stored_role in held:
            raise already_exists("TAG_ALREADY_APPLIED", "user already holds this role")

        pending: list[tuple[dict[str, Any], bool]] = []
        for item in [r for r in roles if r not in held]:
            key = RequestKey(
                request_type=RequestType.TAGGING,
                sender_id=actor.id,
                target_user_id=target,
                event_id=event.event_id,
                video_id=video_id,
                section_id=section_id,
                role=item,
            )
            request, created = self._get_or_create_pending(key, expect_new=expect_new and item == stored_role)
            if created:
                self._notify_tagging_request(request, event)
            pending.append((request, created))

        primary, primary_created = pending[0]
        return {
            "direct_tag": False,
            "request": primary,
            "is_existing": not primary_created,
            "additional_requests": [request for request, _created in pending[1:]],
            "applied_roles": [],
        }

    def remove_tag(
        self,
        actor: Actor,
        *,
        event_id: str,
        user_id: str,
        role: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> dict[str, Any]:
        video_id = _clean_id(video_id, "video_id")
        section_id = _clean_id(section_id, "section_id")
        event = self._require_event(event_id)
        self._require_scope(event, section_id=section_id, video_id=video_id)
        stored_role = validate_role(role, scope_for(section_id=section_id, video_id=video_id))
        if user_id != actor.id and not self._can_update(actor, event, section_id=section_id, video_id=video_id):
            raise forbidden("not allowed to remove tags on this resource")
        removed = self._resources.untag_user(
            event_id=event.event_id,
            user_id=user_id,
            role=stored_role,
            section_id=section_id,
            video_id=video_id,
        )
        if not removed:
            raise not_found("TAG_NOT_FOUND", "user is not tagged with this role")
        logger.info("tag_removed event_id=%s user_id=%s role=%s by=%s", event.event_id, user_id, stored_role, actor.id)
        return {"removed": True, "user_id": user_id, "role": stored_role}

    def pending_tagging_requests(
        self,
        actor: Actor,
        *,
        event_id: str,
        section_id: str | None = None,
        video_id: str | None = None,
        roles: list[str] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Role -> pending request summary, for the caller's own requests on one resource."""
        wanted = {to_storage_role(r) for r in roles} if roles else None
        rows = self._requests.list_by_sender(
            sender_id=actor.id,
            request_type=RequestType.TAGGING.value,
            event_id=event_id,
            status=RequestStatus.PENDING.value,
        )
        out: dict[str, dict[str, Any]] = {}
        for row in rows:
            if row["target_user_id"] != actor.id:
                continue
            if (row.get("section_id") or None) != (section_id or None):
                continue
            if (row.get("video_id") or None) != (video_id or None):
                continue
            if wanted is not None and row["role"] not in wanted:
                continue
            out[to_display_role(row["role"])] = {
                "request_id": row["request_id"],
                "status": row["status"],
                "created_at": row["created_at"],
            }
        return out

    # Team membership

    def create_team_member_request(self, actor: Actor, *, event_id: str, expect_new: bool = False) -> dict[str, Any]:
        event = self._require_event(event_id)
        if not can_request_team_membership(actor.auth_level):
            raise forbidden("creator level is required to request team membership")
        if event.creator_id == actor.id:
            raise validation_failed("the event creator is already part of the team")
        if actor.id in event.team_member_ids:
            raise already_exists("ALREADY_TEAM_MEMBER", "already a team member")

        decision = decide(Action.JOIN_TEAM, actor, can_update=self._can_update(actor, event))
        if decision == Decision.DIRECT_APPLY:
            self._resources.add_team_member(event.event_id, actor.id)
            logger.info("team_member_direct_applied event_id=%s user_id=%s", event.event_id, actor.id)
            return {"direct_apply": True, "request": None, "is_existing": False}

        key = RequestKey(
            request_type=RequestType.TEAM_MEMBER,
            sender_id=actor.id,
            target_user_id=actor.id,
            event_id=event.event_id,
        )
        request, created = self._get_or_create_pending(key, expect_new=expect_new)
        if created:
            name = self._resources.display_name(actor.id)
            self._notifications.notify_many(
                self._approver_ids(event, exclude=actor.id),
                notification_type=NotificationType.INCOMING_REQUEST,
                title="New Team Member Request",
                message=f"{name} wants to join the team of {self._notifications.describe_resource(event.event_id)}",
                related_request_type=RequestType.TEAM_MEMBER,
                related_request_id=request["request_id"],
            )
        return {"direct_apply": False, "request": request, "is_existing": not created}

    def has_pending_team_member_request(self, actor: Actor, *, event_id: str) -> bool:
        key = RequestKey(
            request_type=RequestType.TEAM_MEMBER,
            sender_id=actor.id,
            target_user_id=actor.id,
            event_id=event_id,
        )
        return self._requests.find_pending(key) is not None

    def list_team_members(self, *, event_id: str) -> dict[str, Any]:
        event = self._require_event(event_id)
        return {
            "event_id": event.event_id,
            "creator_id": event.creator_id,
            "team_member_ids": list(event.team_member_ids),
        }

    def add_team_member(self, actor: Actor, *, event_id: str, user_id: str) -> dict[str, Any]:
        event = self._require_event(event_id)
        if not can_update_event(actor.auth_level, self._context(event, actor.id), actor.id):
            raise forbidden("not allowed to manage this event's team")
        member_id = _clean_id(user_id, "user_id") or ""
        if self._resources.get_user(member_id) is None:
            raise not_found("USER_NOT_FOUND", "user not found")
        if event.creator_id == member_id:
            raise validation_failed("the event creator is already part of the team")
        added = self._resources.add_team_member(event.event_id, member_id)
        logger.info(
            "team_member_added event_id=%s user_id=%s by=%s added=%s",
            event.event_id,
            member_id,
            actor.id,
            added,
        )
        return {"added": added, **self.list_team_members(event_id=event.event_id)}

    def remove_team_member(self, actor: Actor, *, event_id: str, user_id: str) -> dict[str, Any]:
        event = self._require_event(event_id)
        if not can_update_event(actor.auth_level, self._context(event, actor.id), actor.id):
            raise forbidden("not allowed to manage this event's team")
        if user_id == event.creator_id:
            raise validation_failed("the event creator cannot be removed from the team", code="CREATOR_PROTECTED")
        if not self._resources.remove_team_member(event.event_id, user_id):
            raise not_found("TEAM_MEMBER_NOT_FOUND", "user is not a team member")
        logger.info("team_member_removed event_id=%s user_id=%s by=%s", event.event_id, user_id, actor.id)
        return {"removed": True, **self.list_team_members(event_id=event.event_id)}

    # Ownership

    def create_ownership_request(
        self,
        actor: Actor,
        *,
        event_id: str,
        message: str | None = None,
        expect_new: bool = False,
    ) -> dict[str, Any]:
        event = self._require_event(event_id)
        if event.creator_id == actor.id:
            raise validation_failed("already the owner of this event")

        decision = decide(Action.CLAIM_OWNERSHIP, actor, can_update=self._can_update(actor, event))
        if decision == Decision.DIRECT_APPLY:
            previous = self._resources.transfer_ownership(event.event_id, actor.id)
            self._notifications.notify_ownership_transferred(
                user_id=previous,
                event_id=event.event_id,
                new_owner_id=actor.id,
            )
            logger.info("ownership_direct_applied event_id=%s new_creator=%s", event.event_id, actor.id)
            return {"direct_apply": True, "request": None, "is_existing": False}

        key = RequestKey(
            request_type=RequestType.OWNERSHIP,
            sender_id=actor.id,
            target_user_id=actor.id,
            event_id=event.event_id,
        )
        request, created = self._get_or_create_pending(key, expect_new=expect_new, message=message)
        if created:
            recipients = [event.creator_id, *self._admin_ids(exclude=actor.id)]
            name = self._resources.display_name(actor.id)
            self._notifications.notify_many(
                [x for x in recipients if x != actor.id],
                notification_type=NotificationType.OWNERSHIP_REQUESTED,
                title="New Ownership Request",
                message=f"{name} requested ownership of {self._notifications.describe_resource(event.event_id)}",
                related_request_type=RequestType.OWNERSHIP,
                related_request_id=request["request_id"],
            )
        return {"direct_apply": False, "request": request, "is_existing": not created}

    def has_pending_ownership_request(self, actor: Actor, *, event_id: str) -> bool:
        key = RequestKey(
            request_type=RequestType.OWNERSHIP,
            sender_id=actor.id,
            target_user_id=actor.id,
            event_id=event_id,
        )
        return self._requests.find_pending(key) is not None

    # Auth level changes

    def create_auth_level_change_request(
        self,
        actor: Actor,
        *,
        requested_level: int,
        message: str,
        target_user_id: str | None = None,
        expect_new: bool = False,
    ) -> dict[str, Any]:
        if not str(message or "").strip():
            raise validation_failed("message is required")
        if requested_level not in {int(level) for level in AuthLevel}:
            raise validation_failed("requested_level must be between 0 and 4")
        target = _clean_id(target_user_id, "target_user_id") or actor.id
        user = self._resources.get_user(target)
        if user is None:
            raise not_found("USER_NOT_FOUND", "user not found")
        if user.auth_level == requested_level:
            raise validation_failed("requested level equals the current level")

        key = RequestKey(request_type=RequestType.AUTH_LEVEL_CHANGE, sender_id=actor.id, target_user_id=target)
        request, created = self._get_or_create_pending(
            key,
            expect_new=expect_new,
            message=message.strip(),
            current_level=user.auth_level,
            requested_level=requested_level,
        )
        if created:
            self._notifications.notify_many(
                self._admin_ids(exclude=actor.id),
                notification_type=NotificationType.INCOMING_REQUEST,
                title="New Auth Level Request",
                message=(
                    f"{self._resources.display_name(actor.id)} requested "
                    f"{AuthLevel(requested_level).name} for {user.display_name}"
                ),
                related_request_type=RequestType.AUTH_LEVEL_CHANGE,
                related_request_id=request["request_id"],
            )
        return {"direct_apply": False, "request": request, "is_existing": not created}

    # Decisions

    def _describe_request(self, row: dict[str, Any]) -> str:
        request_type = RequestType(row["request_type"])
        if request_type == RequestType.AUTH_LEVEL_CHANGE:
            return f"auth level {AuthLevel(int(row['requested_level'])).name}"
        resource = self._notifications.describe_resource(
            row["event_id"],
            section_id=row.get("section_id"),
            video_id=row.get("video_id"),
        )
        if request_type == RequestType.TAGGING:
            return f'"{to_display_role(row["role"])}" for {resource}'
        if request_type == RequestType.TEAM_MEMBER:
            return f"team membership of {resource}"
        return f"ownership of {resource}"

    @staticmethod
    def _with_response(text: str, response_message: str | None) -> str:
        if response_message and response_message.strip():
            return f"{text}: {response_message.strip()}"
        return text

    def _apply_approval(self, row: dict[str, Any], *, keep_previous_creator: bool) -> dict[str, Any]:
        """Run the resource mutation of an approved request and report what changed."""
        request_type = RequestType(row["request_type"])
        if request_type == RequestType.TAGGING:
            added = self._resources.tag_user(
                event_id=row["event_id"],
                user_id=row["target_user_id"],
                role=row["role"],
                section_id=row.get("section_id"),
                video_id=row.get("video_id"),
            )
            return {"tagged": bool(added)}
        if request_type == RequestType.TEAM_MEMBER:
            self._resources.add_team_member(row["event_id"], row["sender_id"])
        elif request_type == RequestType.OWNERSHIP:
            previous = self._resources.transfer_ownership(
                row["event_id"],
                row["sender_id"],
                keep_previous_as_team_member=keep_previous_creator,
            )
            return {"previous_creator": previous}
        else:
            self._resources.set_user_auth_level(row["target_user_id"], int(row["requested_level"]))
        return {}

    def _notify_approval_effects(self, row: dict[str, Any], approver: Actor, effects: dict[str, Any]) -> None:
        request_type = RequestType(row["request_type"])
        if request_type == RequestType.TAGGING:
            if effects.get("tagged") and row["target_user_id"] != row["sender_id"]:
                self._notifications.notify_tagged(
                    user_id=row["target_user_id"],
                    event_id=row["event_id"],
                    role=row["role"],
                    tagged_by=approver.id,
                    section_id=row.get("section_id"),
                    video_id=row.get("video_id"),
                )
        elif request_type == RequestType.OWNERSHIP:
            previous = effects.get("previous_creator")
            if previous and previous != row["sender_id"]:
                self._notifications.notify_ownership_transferred(
                    user_id=previous,
                    event_id=row["event_id"],
                    new_owner_id=row["sender_id"],
                    related_request_id=row["request_id"],
                )

    def approve_request(
        self,
        request_type: RequestType,
        request_id: str,
        approver: Actor,
        *,
        response_message: str | None = None,
        add_old_creator_as_team_member: bool = False,
    ) -> dict[str, Any]:
        row = self._load(request_type, request_id)
        self._require_transition(row, RequestStatus.APPROVED)
        self._authorize_decision(row, approver)
        effects: dict[str, Any] = {}

        def _mutate(approved: dict[str, Any]) -> None:
            effects.update(self._apply_approval(approved, keep_previous_creator=add_old_creator_as_team_member))

        try:
            updated = self._transition(
                row,
                RequestStatus.APPROVED,
                responder_id=approver.id,
                response_message=response_message,
                apply=_mutate,
            )
        except ApiError:
            raise
        except Exception as exc:
            logger.exception("request_mutation_failed request_id=%s", row["request_id"])
            raise internal_error("request could not be applied") from exc

        self._notify_approval_effects(updated, approver, effects)

        if request_type == RequestType.OWNERSHIP:
            notification_type, title = NotificationType.OWNERSHIP_REQUEST_APPROVED, "Ownership Request Approved"
        else:
            notification_type, title = NotificationType.REQUEST_APPROVED, "Request Approved"
        self._notifications.notify(
            user_id=updated["sender_id"],
            notification_type=notification_type,
            title=title,
            message=self._with_response(f"Approved for {self._describe_request(updated)}", response_message),
            related_request_type=request_type,
            related_request_id=updated["request_id"],
        )
        return updated

    def deny_request(
        self,
        request_type: RequestType,
        request_id: str,
        approver: Actor,
        *,
        response_message: str | None = None,
    ) -> dict[str, Any]:
        row = self._load(request_type, request_id)
        self._require_transition(row, RequestStatus.DENIED)
        self._authorize_decision(row, approver)
        updated = self._transition(
            row,
            RequestStatus.DENIED,
            responder_id=approver.id,
            response_message=response_message,
        )
        if request_type == RequestType.OWNERSHIP:
            notification_type, title = NotificationType.OWNERSHIP_REQUEST_DENIED, "Ownership Request Denied"
        else:
            notification_type, title = NotificationType.REQUEST_DENIED, "Request Denied"
        self._notifications.notify(
            user_id=updated["sender_id"],
            notification_type=notification_type,
            title=title,
            message=self._with_response(f"Denied for {self._describe_request(updated)}", response_message),
            related_request_type=request_type,
            related_request_id=updated["request_id"],
        )
        return updated

    def cancel_request(self, request_type: RequestType, request_id: str, actor: Actor) -> dict[str, Any]:
        row = self._load(request_type, request_id)
        if row["sender_id"] != actor.id:
            raise forbidden("only the sender can cancel a request")
        self._require_transition(row, RequestStatus.CANCELLED)
        return self._transition(row, RequestStatus.CANCELLED, responder_id=actor.id)

    # Listings

    def list_incoming(self, actor: Actor) -> list[dict[str, Any]]:
        return [row for row in self._requests.list_pending() if self._may_decide(row, actor)]

    def list_outgoing(self, actor: Actor, *, status: str | None = None) -> list[dict[str, Any]]:
        return self._requests.list_by_sender(sender_id=actor.id, status=status)
