from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Callable

import yaml

from streams.errors import MentionResolutionError
from streams.models import Destination


BROADCAST_TOKENS = {"everyone": "@everyone", "here": "@here"}
SUPPRESS_TOKEN = "none"


def _norm_streamer(streamer_id: str) -> str:
    return str(streamer_id or "").strip().lower()


def _norm_value(value: Any) -> str | None:
    text = str(value or "").strip()
    if text.startswith("@") and text[1:].lower() in BROADCAST_TOKENS:
        text = text[1:]
    return text or None


def normalize_mention_config(raw: Any) -> dict[str, dict[str, Any]]:
    """Accepts either {streams: {...}} or the bare streamer mapping."""
    if not isinstance(raw, dict):
        return {}
    streams_raw = raw.get("streams") if isinstance(raw.get("streams"), dict) else raw
    out: dict[str, dict[str, Any]] = {}
    for streamer, entry in streams_raw.items():
        key = _norm_streamer(streamer)
        if not key:
            continue
        if not isinstance(entry, dict):
            # shorthand: `nova: here`
            out[key] = {"default": _norm_value(entry), "server_specific": {}}
            continue
        specific_raw = entry.get("server_specific") if isinstance(entry.get("server_specific"), dict) else {}
        specific = {
            str(group_id).strip(): _norm_value(value)
            for group_id, value in specific_raw.items()
            if str(group_id).strip() and _norm_value(value)
        }
        out[key] = {"default": _norm_value(entry.get("default")), "server_specific": specific}
    return out


class MentionConfig:
    """Mention settings backed by a YAML file, reloaded when the file changes."""

    def __init__(self, path: str | None = None, *, initial: dict[str, Any] | None = None) -> None:
        self.path = str(path) if path else None
        self._data: dict[str, dict[str, Any]] = normalize_mention_config(initial or {})
        self._mtime: float | None = None

    def _file_mtime(self) -> float | None:
        if not self.path:
            return None
        p = Path(self.path)
        return p.stat().st_mtime if p.exists() else None

    def _maybe_reload(self) -> None:
        mtime = self._file_mtime()
        if mtime is None or mtime == self._mtime:
            return
        try:
            raw = yaml.safe_load(Path(self.path).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            print(f"[CFG] could not read mention config {self.path}: {e}")
            return
        self._data = normalize_mention_config(raw)
        self._mtime = mtime

    def reload(self) -> dict[str, dict[str, Any]]:
        self._mtime = None
        self._maybe_reload()
        return self.snapshot()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        self._maybe_reload()
        return copy.deepcopy(self._data)

    def entry(self, streamer_id: str) -> dict[str, Any] | None:
        self._maybe_reload()
        return self._data.get(_norm_streamer(streamer_id))

    def _save(self) -> None:
        if not self.path:
            return
        p = Path(self.path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(yaml.safe_dump({"streams": self._data}, sort_keys=True), encoding="utf-8")
        self._mtime = self._file_mtime()

    def _entry_for_write(self, streamer_id: str) -> dict[str, Any]:
        self._maybe_reload()
        key = _norm_streamer(streamer_id)
        if not key:
            raise ValueError("streamer id is required")
        return self._data.setdefault(key, {"default": None, "server_specific": {}})

    def set_default(self, streamer_id: str, value: str | None) -> None:
        self._entry_for_write(streamer_id)["default"] = _norm_value(value)
        self._save()

    def set_server_specific(self, streamer_id: str, group_id: str, value: str | None) -> None:
        entry = self._entry_for_write(streamer_id)
        clean = _norm_value(value)
        if clean:
            entry["server_specific"][str(group_id)] = clean
        else:
            entry["server_specific"].pop(str(group_id), None)
        self._save()

    def clear(self, streamer_id: str) -> None:
        self._maybe_reload()
        self._data.pop(_norm_streamer(streamer_id), None)
        self._save()


class MentionResolver:
    def __init__(self, *, role_lookup: Callable[[str, str], str | None] | None = None) -> None:
        self.role_lookup = role_lookup

    @staticmethod
    def configured_value(streamer_id: str, destination: Destination, mention_config) -> str | None:
        if isinstance(mention_config, MentionConfig):
            entry = mention_config.entry(streamer_id)
        else:
            entry = normalize_mention_config(mention_config or {}).get(_norm_streamer(streamer_id))
        if not entry:
            return None
        specific = entry.get("server_specific") or {}
        value = specific.get(str(destination.group_id))
        if value:
            return value
        return entry.get("default")

    def resolve(self, streamer_id: str, destination: Destination, mention_config) -> str | None:
        value = self.configured_value(streamer_id, destination, mention_config)
        if not value or value.lower() == SUPPRESS_TOKEN:
            return None
        broadcast = BROADCAST_TOKENS.get(value.lower())
        if broadcast:
            return broadcast
        if self.role_lookup is None:
            print(f"[Streams] no role directory available; mention {value!r} dropped for {destination.label()}")
            return None
        try:
            mention = self.role_lookup(str(destination.group_id), value)
        except MentionResolutionError as e:
            print(f"[Streams] mention {value!r} unresolved for {destination.label()}: {e}")
            return None
        except Exception as e:
            print(f"[Streams] role lookup error for {value!r} on {destination.label()}: {e}")
            return None
        if not mention:
            print(f"[Streams] role {value!r} not found on {destination.label()}; sending without mention")
            return None
        return mention
