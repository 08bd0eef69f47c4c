from __future__ import annotations

import unittest
from typing import Any

from localfeed.community import CommunityStore, community_label
from localfeed.kv_store import COMMUNITY_KEY, PROFILE_KEY, SQLiteKeyValueStore
from localfeed.profile import ProfileStore
from localfeed.signals import CommunityChanged, ProfileUpdated, SignalBus, Topic


class TestCommunityLabel(unittest.TestCase):
    def test_joins_non_empty_parts(self) -> None:
        self.assertEqual(community_label("United States", "Colorado", "Denver"), "Denver, Colorado, United States")
        self.assertEqual(community_label(" Ghana ", "", "Accra"), "Accra, Ghana")
        self.assertEqual(community_label("Ghana", ""), "Ghana")
        self.assertEqual(community_label("", "", ""), "Colorado, United States")


class TestCommunityStore(unittest.TestCase):
    def test_default_and_update(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as kv:
            bus = SignalBus()
            seen: list[Any] = []
            bus.subscribe(Topic.COMMUNITY_CHANGED, seen.append)

            store = CommunityStore(kv, bus)
            self.assertEqual(store.label(), "Denver, Colorado, United States")

            store.set_selection("Ghana", "Greater Accra", "Accra")
            self.assertEqual(store.label(), "Accra, Greater Accra, Ghana")
            self.assertEqual(seen, [CommunityChanged(label="Accra, Greater Accra, Ghana")])

    def test_corrupt_selection_falls_back(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as kv:
            kv.set(COMMUNITY_KEY, "not json")
            self.assertEqual(CommunityStore(kv).label(), "Denver, Colorado, United States")


class TestProfileStore(unittest.TestCase):
    def test_display_name_defaults_and_updates(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as kv:
            bus = SignalBus()
            seen: list[Any] = []
            bus.subscribe(Topic.PROFILE_UPDATED, seen.append)

            profile = ProfileStore(kv, bus)
            self.assertEqual(profile.display_name(), "Guest")

            profile.set_display_name("  Ama  ")
            self.assertEqual(profile.display_name(), "Ama")
            self.assertEqual(seen[-1], ProfileUpdated(display_name="Ama", avatar_url=None))

            profile.set_avatar_url("data:image/png;base64,AA==")
            self.assertEqual(profile.avatar_url(), "data:image/png;base64,AA==")
            profile.set_avatar_url(None)
            self.assertIsNone(profile.avatar_url())

            with self.assertRaises(ValueError):
                profile.set_display_name(" ")

    def test_keeps_unknown_profile_fields(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as kv:
            kv.set(PROFILE_KEY, '{"bio": "hi"}')
            ProfileStore(kv).set_display_name("Ama")
            self.assertIn('"bio":"hi"', kv.get(PROFILE_KEY) or "")


if __name__ == "__main__":
    unittest.main()
