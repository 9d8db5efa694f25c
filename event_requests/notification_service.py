from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from event_requests.errors import not_found
from event_requests.models import NotificationType, RequestType, new_id, utcnow_iso
from event_requests.navigation import EventOnly, NavigationContext, append_tail, navigation_from_ids
from event_requests.notification_targets import related_request_lookup, resolve
from event_requests.roles import to_display_role

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, store: Any) -> None:
        self._store = store
        self._repo = store.notifications_repository
        self._resources = store.resources

    # Emission

    def notify(
        self,
        *,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_request_type: RequestType | None = None,
        related_request_id: str | None = None,
    ) -> dict[str, Any]:
        record = {
            "notification_id": new_id("ntf"),
            "user_id": user_id,
            "type": notification_type.value,
            "title": title,
            "message": message,
            "related_request_type": related_request_type.value if related_request_type else None,
            "related_request_id": related_request_id,
            "is_old": False,
            "created_at": utcnow_iso(),
        }
        created = self._repo.append(notification=record)
        logger.info(
            "notification_appended type=%s user_id=%s related_request_id=%s",
            record["type"],
            user_id,
            related_request_id,
        )
        return created

    def notify_many(self, user_ids: Iterable[str], **kwargs: Any) -> list[dict[str, Any]]:
        seen: set[str] = set()
        created: list[dict[str, Any]] = []
        for user_id in user_ids:
            if not user_id or user_id in seen:
                continue
            seen.add(user_id)
            created.append(self.notify(user_id=user_id, **kwargs))
        return created

    def describe_resource(self, event_id: str, *, section_id: str | None = None, video_id: str | None = None) -> str:
        event = self._resources.get_event(event_id)
        event_title = event.title if event is not None else event_id
        if video_id:
            video = self._resources.get_video(video_id)
            return f'video "{video.title if video else video_id}" in {event_title}'
        if section_id:
            section = self._resources.get_section(section_id)
            return f'section "{section.title if section else section_id}" in {event_title}'
        return f'event "{event_title}"'

    def navigation_for(
        self,
        event_id: str | None,
        *,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> NavigationContext | None:
        if video_id and not section_id:
            video = self._resources.get_video(video_id)
            section_id = video.section_id if video is not None else None
        return navigation_from_ids(event_id, section_id, video_id)

    def notify_tagged(
        self,
        *,
        user_id: str,
        event_id: str,
        role: str,
        tagged_by: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> dict[str, Any]:
        resource = self.describe_resource(event_id, section_id=section_id, video_id=video_id)
        text = f'{self._resources.display_name(tagged_by)} tagged you as "{to_display_role(role)}" in {resource}'
        return self.notify(
            user_id=user_id,
            notification_type=NotificationType.TAGGED,
            title="You were tagged",
            message=append_tail(text, self.navigation_for(event_id, section_id=section_id, video_id=video_id)),
        )

    def notify_ownership_transferred(
        self,
        *,
        user_id: str,
        event_id: str,
        new_owner_id: str,
        related_request_id: str | None = None,
    ) -> dict[str, Any]:
        text = (
            f"Ownership of {self.describe_resource(event_id)} "
            f"was transferred to {self._resources.display_name(new_owner_id)}"
        )
        return self.notify(
            user_id=user_id,
            notification_type=NotificationType.OWNERSHIP_TRANSFERRED,
            title="Ownership Transferred",
            message=append_tail(text, EventOnly(event_id=event_id)),
            related_request_type=RequestType.OWNERSHIP if related_request_id else None,
            related_request_id=related_request_id,
        )

    # Reading and dismissal

    def list_for_user(
        self,
        user_id: str,
        *,
        limit: int | None = None,
        is_old: bool | None = None,
    ) -> list[dict[str, Any]]:
        max_limit = self._store.NOTIFICATION_LIST_LIMIT_MAX
        effective = self._store.notification_list_limit if limit is None else max(1, min(int(limit), max_limit))
        return self._repo.list_for_user(user_id=user_id, limit=effective, is_old=is_old)

    def count_new(self, user_id: str) -> int:
        return self._repo.count_new(user_id=user_id)

    def get_for_user(self, user_id: str, notification_id: str) -> dict[str, Any]:
        row = self._repo.get(notification_id=notification_id)
        if row is None or row["user_id"] != user_id:
            raise not_found("NOTIFICATION_NOT_FOUND", "notification not found")
        return row

    def mark_old(self, user_id: str, notification_id: str) -> dict[str, Any]:
        row = self._repo.mark_old(user_id=user_id, notification_id=notification_id)
        if row is None:
            raise not_found("NOTIFICATION_NOT_FOUND", "notification not found")
        return row

    def mark_all_old(self, user_id: str) -> int:
        updated = self._repo.mark_all_old(user_id=user_id)
        logger.info("notifications_marked_old user_id=%s count=%s", user_id, updated)
        return updated

    # Target resolution

    def _related_context(self, notification: dict[str, Any]) -> dict[str, Any] | None:
        lookup = related_request_lookup(notification)
        if lookup is None:
            return None
        request_type, request_id = lookup
        row = self._store.requests_repository.get(request_id=request_id)
        if row is None or row["request_type"] != request_type.value:
            return None
        ctx = self.navigation_for(row.get("event_id"), section_id=row.get("section_id"), video_id=row.get("video_id"))
        if ctx is None:
            return None
        return {
            "event_id": ctx.event_id,
            "section_id": getattr(ctx, "section_id", None),
            "video_id": getattr(ctx, "video_id", None),
        }

    def resolve_target_url(self, user_id: str, notification_id: str) -> str | None:
        notification = self.get_for_user(user_id, notification_id)
        return resolve(notification, self._related_context(notification))
