from __future__ import annotations

from pydantic import BaseModel, ConfigDict, ValidationError

from .kv_store import COMMUNITY_KEY, KeyValueStore, read_json, write_json
from .signals import CommunityChanged, SignalBus, Topic

EMPTY_LABEL = "Colorado, United States"


class CommunitySelection(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    country: str = "United States"
    region: str = "Colorado"
    city: str = "Denver"

    @property
    def label(self) -> str:
        return community_label(self.country, self.region, self.city)


def community_label(country: str, region: str, city: str | None = None) -> str:
    """Join the non-empty parts as `City, Region, Country`."""
    parts = [p for p in ((city or "").strip(), (region or "").strip(), (country or "").strip()) if p]
    if not parts:
        return EMPTY_LABEL
    return ", ".join(parts)


class CommunityStore:
    """Persists the active community selection; changing it never touches existing posts."""

    def __init__(self, kv: KeyValueStore, bus: SignalBus | None = None) -> None:
        self._kv = kv
        self._bus = bus

    def selection(self) -> CommunitySelection:
        raw = read_json(self._kv, COMMUNITY_KEY, {}, expect=dict)
        try:
            return CommunitySelection.model_validate(raw)
        except ValidationError:
            return CommunitySelection()

    def label(self) -> str:
        return self.selection().label

    def set_selection(self, country: str, region: str, city: str | None = None) -> CommunitySelection:
        sel = CommunitySelection(
            country=(country or "").strip(),
            region=(region or "").strip(),
            city=(city or "").strip(),
        )
        write_json(self._kv, COMMUNITY_KEY, sel.model_dump(mode="json"))
        if self._bus is not None:
            self._bus.publish(Topic.COMMUNITY_CHANGED, CommunityChanged(label=sel.label))
        return sel
