"""Navigation context carried by notifications.

Legacy TAGGED and OWNERSHIP_TRANSFERRED messages embed their context as a
pipe-delimited tail (``text|eventId:E|sectionId:S|videoId:V``). This module is
the only place that reads or writes that format.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

TAIL_SEPARATOR = "|"
_TAIL_KEYS = {"eventId": "event_id", "sectionId": "section_id", "videoId": "video_id"}


@dataclass(frozen=True)
class EventOnly:
    event_id: str


@dataclass(frozen=True)
class EventSection:
    event_id: str
    section_id: str


@dataclass(frozen=True)
class EventSectionVideo:
    event_id: str
    section_id: str
    video_id: str


NavigationContext = EventOnly | EventSection | EventSectionVideo


def _clean(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def navigation_from_ids(
    event_id: object,
    section_id: object = None,
    video_id: object = None,
) -> NavigationContext | None:
    event = _clean(event_id)
    if event is None:
        return None
    section = _clean(section_id)
    video = _clean(video_id)
    if section and video:
        return EventSectionVideo(event_id=event, section_id=section, video_id=video)
    if section:
        return EventSection(event_id=event, section_id=section)
    return EventOnly(event_id=event)


def event_only(ctx: NavigationContext | None) -> EventOnly | None:
    if ctx is None:
        return None
    return EventOnly(event_id=ctx.event_id)


def encode_tail(ctx: NavigationContext) -> str:
    parts = [f"eventId:{ctx.event_id}"]
    if isinstance(ctx, (EventSection, EventSectionVideo)):
        parts.append(f"sectionId:{ctx.section_id}")
    if isinstance(ctx, EventSectionVideo):
        parts.append(f"videoId:{ctx.video_id}")
    return TAIL_SEPARATOR + TAIL_SEPARATOR.join(parts)


def append_tail(text: str, ctx: NavigationContext | None) -> str:
    if ctx is None:
        return text
    return f"{text}{encode_tail(ctx)}"


def decode_tail(message: object) -> NavigationContext | None:
    """Parse a pipe tail. Malformed input yields None, never an exception."""
    if not isinstance(message, str) or TAIL_SEPARATOR not in message:
        return None
    found: dict[str, str] = {}
    for segment in message.split(TAIL_SEPARATOR)[1:]:
        key, sep, value = segment.strip().partition(":")
        if not sep:
            continue
        field = _TAIL_KEYS.get(key.strip())
        if field is None or field in found:
            continue
        cleaned = _clean(value)
        if cleaned is not None:
            found[field] = cleaned
    return navigation_from_ids(found.get("event_id"), found.get("section_id"), found.get("video_id"))


def to_path(ctx: NavigationContext | None) -> str | None:
    if ctx is None:
        return None
    base = f"/events/{quote(ctx.event_id, safe='')}"
    if isinstance(ctx, EventOnly):
        return base
    path = f"{base}/sections/{quote(ctx.section_id, safe='')}"
    if isinstance(ctx, EventSectionVideo):
        return f"{path}?video={quote(ctx.video_id, safe='')}"
    return path
