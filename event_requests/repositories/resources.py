from __future__ import annotations

import threading
from dataclasses import dataclass, replace

from event_requests.permissions import AuthLevel


@dataclass(frozen=True)
class UserRecord:
    user_id: str
    display_name: str
    auth_level: int = AuthLevel.BASE_USER
    account_verified: bool = False
    claimed: bool = True


@dataclass(frozen=True)
class EventRecord:
    event_id: str
    title: str
    creator_id: str
    team_member_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class SectionRecord:
    section_id: str
    event_id: str
    title: str


@dataclass(frozen=True)
class BracketRecord:
    bracket_id: str
    section_id: str
    title: str = ""


@dataclass(frozen=True)
class VideoRecord:
    video_id: str
    event_id: str
    section_id: str
    title: str
    bracket_id: str | None = None


TagScope = tuple[str, str, str]


def _scope(event_id: str, section_id: str | None, video_id: str | None) -> TagScope:
    if video_id:
        return (event_id, "", video_id)
    return (event_id, section_id or "", "")


class InMemoryResourceGraph:
    """Event/section/video graph with role tags and team membership."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[str, UserRecord] = {}
        self._events: dict[str, EventRecord] = {}
        self._sections: dict[str, SectionRecord] = {}
        self._brackets: dict[str, BracketRecord] = {}
        self._videos: dict[str, VideoRecord] = {}
        self._tags: dict[TagScope, dict[str, set[str]]] = {}

    def reset(self) -> None:
        with self._lock:
            self._users.clear()
            self._events.clear()
            self._sections.clear()
            self._brackets.clear()
            self._videos.clear()
            self._tags.clear()

    # Users

    def upsert_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self._users[user.user_id] = user
        return user

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._lock:
            return self._users.get(user_id)

    def set_user_auth_level(self, user_id: str, auth_level: int) -> UserRecord | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            updated = replace(user, auth_level=int(auth_level))
            self._users[user_id] = updated
            return updated

    def user_ids_with_min_auth_level(self, auth_level: int) -> list[str]:
        with self._lock:
            return sorted(u.user_id for u in self._users.values() if u.auth_level >= auth_level)

    def display_name(self, user_id: str) -> str:
        user = self.get_user(user_id)
        return user.display_name if user is not None else user_id

    # Events, sections, videos

    def create_event(self, event: EventRecord) -> EventRecord:
        with self._lock:
            self._events[event.event_id] = event
        return event

    def get_event(self, event_id: str) -> EventRecord | None:
        with self._lock:
            return self._events.get(event_id)

    def add_section(self, section: SectionRecord) -> SectionRecord:
        with self._lock:
            if section.event_id not in self._events:
                raise KeyError(f"event not found: {section.event_id}")
            self._sections[section.section_id] = section
        return section

    def get_section(self, section_id: str) -> SectionRecord | None:
        with self._lock:
            return self._sections.get(section_id)

    def add_bracket(self, bracket: BracketRecord) -> BracketRecord:
        with self._lock:
            if bracket.section_id not in self._sections:
                raise KeyError(f"section not found: {bracket.section_id}")
            self._brackets[bracket.bracket_id] = bracket
        return bracket

    def add_video(
        self,
        *,
        video_id: str,
        title: str,
        section_id: str | None = None,
        bracket_id: str | None = None,
    ) -> VideoRecord:
        with self._lock:
            if bracket_id is not None:
                bracket = self._brackets.get(bracket_id)
                if bracket is None:
                    raise KeyError(f"bracket not found: {bracket_id}")
                section_id = bracket.section_id
            section = self._sections.get(section_id or "")
            if section is None:
                raise KeyError(f"section not found: {section_id}")
            video = VideoRecord(
                video_id=video_id,
                event_id=section.event_id,
                section_id=section.section_id,
                title=title,
                bracket_id=bracket_id,
            )
            self._videos[video_id] = video
        return video

    def get_video(self, video_id: str) -> VideoRecord | None:
        with self._lock:
            return self._videos.get(video_id)

    # Tags

    def tag_user(
        self,
        *,
        event_id: str,
        user_id: str,
        role: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> bool:
        """Add ``role`` for ``user_id``; False when the tag already existed."""
        with self._lock:
            roles = self._tags.setdefault(_scope(event_id, section_id, video_id), {}).setdefault(user_id, set())
            if role in roles:
                return False
            roles.add(role)
            return True

    def untag_user(
        self,
        *,
        event_id: str,
        user_id: str,
        role: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> bool:
        with self._lock:
            users = self._tags.get(_scope(event_id, section_id, video_id), {})
            roles = users.get(user_id)
            if not roles or role not in roles:
                return False
            roles.discard(role)
            if not roles:
                del users[user_id]
            return True

    def user_roles(
        self,
        *,
        event_id: str,
        user_id: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> set[str]:
        with self._lock:
            return set(self._tags.get(_scope(event_id, section_id, video_id), {}).get(user_id, set()))

    def tagged_users(
        self,
        *,
        event_id: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> dict[str, list[str]]:
        with self._lock:
            users = self._tags.get(_scope(event_id, section_id, video_id), {})
            return {user_id: sorted(roles) for user_id, roles in users.items() if roles}

    # Team membership and ownership

    def is_creator(self, event_id: str, user_id: str) -> bool:
        event = self.get_event(event_id)
        return event is not None and event.creator_id == user_id

    def is_team_member(self, event_id: str, user_id: str) -> bool:
        event = self.get_event(event_id)
        if event is None:
            return False
        return event.creator_id == user_id or user_id in event.team_member_ids

    def team_member_ids(self, event_id: str) -> list[str]:
        event = self.get_event(event_id)
        return list(event.team_member_ids) if event is not None else []

    def add_team_member(self, event_id: str, user_id: str) -> bool:
        with self._lock:
            event = self._events[event_id]
            if event.creator_id == user_id or user_id in event.team_member_ids:
                return False
            self._events[event_id] = replace(event, team_member_ids=(*event.team_member_ids, user_id))
            return True

    def remove_team_member(self, event_id: str, user_id: str) -> bool:
        with self._lock:
            event = self._events[event_id]
            if event.creator_id == user_id or user_id not in event.team_member_ids:
                return False
            remaining = tuple(x for x in event.team_member_ids if x != user_id)
            self._events[event_id] = replace(event, team_member_ids=remaining)
            return True

    def transfer_ownership(
        self,
        event_id: str,
        new_creator_id: str,
        *,
        keep_previous_as_team_member: bool = False,
    ) -> str:
        """Make ``new_creator_id`` the creator and return the previous creator id."""
        with self._lock:
            event = self._events[event_id]
            previous = event.creator_id
            members = [x for x in event.team_member_ids if x != new_creator_id]
            if keep_previous_as_team_member and previous != new_creator_id and previous not in members:
                members.append(previous)
            self._events[event_id] = replace(event, creator_id=new_creator_id, team_member_ids=tuple(members))
            return previous
