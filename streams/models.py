from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any


KEY_SEPARATOR = "_"
KEY_ESCAPE = "\\"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True, slots=True)
class StreamEvent:
    streamer_id: str
    display_name: str
    is_live: bool
    title: str = ""
    game_name: str = ""
    viewer_count: int = 0
    thumbnail_ref: str | None = None
    started_at: datetime | None = None
    observed_at: datetime | None = None
    profile_image_ref: str | None = None
    boxart_ref: str | None = None
    url: str | None = None

    def channel_url(self) -> str:
        return self.url or f"https://twitch.tv/{self.streamer_id}"

    def as_offline(self, observed_at: datetime | None = None) -> "StreamEvent":
        return replace(self, is_live=False, observed_at=observed_at or utc_now())

    @classmethod
    def from_helix(
        cls,
        *,
        user: dict[str, Any],
        stream: dict[str, Any] | None,
        game: dict[str, Any] | None = None,
        observed_at: datetime | None = None,
    ) -> "StreamEvent":
        login = str(user.get("login") or (stream or {}).get("user_login") or "").strip().lower()
        if not login:
            raise ValueError("Helix payload is missing a login")
        display_name = str(user.get("display_name") or (stream or {}).get("user_name") or login).strip()
        stream = stream or {}
        is_live = str(stream.get("type") or "").strip().lower() == "live"
        try:
            viewers = int(stream.get("viewer_count") or 0)
        except (TypeError, ValueError):
            viewers = 0
        return cls(
            streamer_id=login,
            display_name=display_name,
            is_live=is_live,
            title=str(stream.get("title") or "").strip(),
            game_name=str(stream.get("game_name") or (game or {}).get("name") or "").strip(),
            viewer_count=viewers,
            thumbnail_ref=(str(stream.get("thumbnail_url") or "").strip() or None),
            started_at=_parse_iso(stream.get("started_at")),
            observed_at=observed_at or utc_now(),
            profile_image_ref=(str(user.get("profile_image_url") or "").strip() or None),
            boxart_ref=(str((game or {}).get("box_art_url") or "").strip() or None),
            url=f"https://twitch.tv/{login}",
        )


@dataclass(frozen=True, slots=True)
class Destination:
    group_id: str
    destination_id: str
    display_name: str = ""
    can_post: bool = True

    def label(self) -> str:
        name = self.display_name or self.destination_id
        return f"#{name} ({self.group_id})"


def _escape_key_part(part: str) -> str:
    return str(part).replace(KEY_ESCAPE, KEY_ESCAPE * 2).replace(KEY_SEPARATOR, KEY_ESCAPE + KEY_SEPARATOR)


@dataclass(frozen=True, slots=True)
class NotificationKey:
    group_id: str
    destination_id: str
    streamer_id: str

    @classmethod
    def for_pair(cls, destination: Destination, streamer_id: str) -> "NotificationKey":
        return cls(str(destination.group_id), str(destination.destination_id), str(streamer_id))

    def serialize(self) -> str:
        return KEY_SEPARATOR.join(
            _escape_key_part(p) for p in (self.group_id, self.destination_id, self.streamer_id)
        )

    @classmethod
    def parse(cls, raw: str) -> "NotificationKey":
        parts: list[str] = []
        buf: list[str] = []
        chars = iter(str(raw))
        for ch in chars:
            if ch == KEY_ESCAPE:
                nxt = next(chars, None)
                if nxt is None:
                    raise ValueError(f"Dangling escape in notification key: {raw!r}")
                buf.append(nxt)
            elif ch == KEY_SEPARATOR:
                parts.append("".join(buf))
                buf = []
            else:
                buf.append(ch)
        parts.append("".join(buf))
        if len(parts) != 3:
            raise ValueError(f"Notification key must have 3 parts: {raw!r}")
        return cls(parts[0], parts[1], parts[2])

    def __str__(self) -> str:
        return self.serialize()


@dataclass(frozen=True, slots=True)
class NotificationRecord:
    message_ref: str | None
    is_offline: bool
    created_at: datetime
    last_updated_at: datetime

    def last_activity(self) -> datetime:
        return self.last_updated_at or self.created_at

    def touched(self, now: datetime) -> "NotificationRecord":
        return replace(self, last_updated_at=now)

    def retired(self, now: datetime) -> "NotificationRecord":
        return replace(self, is_offline=True, last_updated_at=now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_ref": self.message_ref,
            "is_offline": bool(self.is_offline),
            "created_at": self.created_at.isoformat(),
            "last_updated_at": self.last_updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "NotificationRecord | None":
        if not isinstance(raw, dict):
            return None
        ref = raw.get("message_ref")
        if ref is None or str(ref).strip() == "":
            return None
        created = _parse_iso(raw.get("created_at"))
        updated = _parse_iso(raw.get("last_updated_at")) or created
        if created is None:
            created = updated
        if created is None:
            return None
        return cls(
            message_ref=str(ref),
            is_offline=bool(raw.get("is_offline", False)),
            created_at=created,
            last_updated_at=updated or created,
        )
