from __future__ import annotations

from .kv_store import AVATAR_URL_KEY, PROFILE_KEY, KeyValueStore, read_json, write_json
from .signals import ProfileUpdated, SignalBus, Topic

DEFAULT_DISPLAY_NAME = "Guest"


class ProfileStore:
    """Cached display name and avatar for the local user."""

    def __init__(self, kv: KeyValueStore, bus: SignalBus | None = None) -> None:
        self._kv = kv
        self._bus = bus

    def display_name(self) -> str:
        data = read_json(self._kv, PROFILE_KEY, {}, expect=dict)
        name = data.get("displayName")
        if isinstance(name, str) and name.strip():
            return name.strip()
        return DEFAULT_DISPLAY_NAME

    def avatar_url(self) -> str | None:
        url = (self._kv.get(AVATAR_URL_KEY) or "").strip()
        return url or None

    def set_display_name(self, name: str) -> str:
        value = (name or "").strip()
        if not value:
            raise ValueError("display name must be non-empty")

        data = read_json(self._kv, PROFILE_KEY, {}, expect=dict)
        data["displayName"] = value
        write_json(self._kv, PROFILE_KEY, data)
        self._announce()
        return value

    def set_avatar_url(self, url: str | None) -> None:
        value = (url or "").strip()
        if value:
            self._kv.set(AVATAR_URL_KEY, value)
        else:
            self._kv.remove(AVATAR_URL_KEY)
        self._announce()

    def _announce(self) -> None:
        if self._bus is not None:
            self._bus.publish(
                Topic.PROFILE_UPDATED,
                ProfileUpdated(display_name=self.display_name(), avatar_url=self.avatar_url()),
            )
