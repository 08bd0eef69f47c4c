from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from typing import Any

from localfeed.kv_store import SQLiteKeyValueStore
from localfeed.signals import (
    CommunityChanged,
    OpenComposer,
    ProfileUpdated,
    SignalBus,
    StorageChanged,
    StorageWatcher,
    SubscriptionScope,
    Topic,
)


class TestSignalBus(unittest.TestCase):
    def test_publish_reaches_subscribers_synchronously(self) -> None:
        bus = SignalBus()
        seen: list[Any] = []
        bus.subscribe(Topic.OPEN_COMPOSER, seen.append)
        bus.subscribe(Topic.PROFILE_UPDATED, seen.append)

        delivered = bus.publish(Topic.OPEN_COMPOSER, OpenComposer(kind="sell", prefill="Selling my bike"))

        self.assertEqual(delivered, 1)
        self.assertEqual(seen, [OpenComposer(kind="sell", prefill="Selling my bike")])

    def test_payload_type_is_checked(self) -> None:
        bus = SignalBus()
        with self.assertRaises(TypeError):
            bus.publish(Topic.COMMUNITY_CHANGED, ProfileUpdated(display_name="Ama"))

    def test_unsubscribe_is_symmetric(self) -> None:
        bus = SignalBus()
        seen: list[Any] = []
        sub = bus.subscribe(Topic.COMMUNITY_CHANGED, seen.append)

        self.assertTrue(bus.unsubscribe(sub))
        self.assertFalse(bus.unsubscribe(sub))
        bus.publish(Topic.COMMUNITY_CHANGED, CommunityChanged(label="Accra"))
        self.assertEqual(seen, [])

    def test_failing_handler_does_not_block_others(self) -> None:
        bus = SignalBus()
        seen: list[Any] = []

        def boom(_: Any) -> None:
            raise RuntimeError("boom")

        bus.subscribe(Topic.COMMUNITY_CHANGED, boom)
        bus.subscribe(Topic.COMMUNITY_CHANGED, seen.append)

        with self.assertLogs("localfeed.signals", level="ERROR"):
            bus.publish(Topic.COMMUNITY_CHANGED, CommunityChanged(label="Accra"))
        self.assertEqual(len(seen), 1)


class TestSubscriptionScope(unittest.TestCase):
    def test_remount_does_not_duplicate_delivery(self) -> None:
        bus = SignalBus()
        seen: list[Any] = []

        for _ in range(3):
            with SubscriptionScope(bus) as scope:
                scope.subscribe(Topic.PROFILE_UPDATED, seen.append)
                scope.subscribe(Topic.COMMUNITY_CHANGED, seen.append)
                self.assertEqual(len(scope), 2)

        self.assertEqual(bus.subscriber_count(Topic.PROFILE_UPDATED), 0)
        self.assertEqual(bus.subscriber_count(Topic.COMMUNITY_CHANGED), 0)

        with SubscriptionScope(bus) as scope:
            scope.subscribe(Topic.PROFILE_UPDATED, seen.append)
            bus.publish(Topic.PROFILE_UPDATED, ProfileUpdated(display_name="Ama"))
        self.assertEqual(len(seen), 1)

    def test_closed_scope_rejects_subscriptions(self) -> None:
        scope = SubscriptionScope(SignalBus())
        scope.close()
        with self.assertRaises(RuntimeError):
            scope.subscribe(Topic.OPEN_COMPOSER, print)


class TestStorageWatcher(unittest.TestCase):
    def test_other_context_writes_become_signals(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "state.sqlite"
            with SQLiteKeyValueStore.open(path, context_id="writer") as writer, SQLiteKeyValueStore.open(
                path, context_id="reader"
            ) as reader:
                writer_bus, reader_bus = SignalBus(), SignalBus()
                writer_seen: list[Any] = []
                reader_seen: list[Any] = []
                writer_bus.subscribe(Topic.STORAGE_CHANGED, writer_seen.append)
                reader_bus.subscribe(Topic.STORAGE_CHANGED, reader_seen.append)

                writer.set("localfeed.posts.v1", "[]")

                StorageWatcher(writer, writer_bus).poll()
                StorageWatcher(reader, reader_bus).poll()

                self.assertEqual(writer_seen, [])
                self.assertEqual(
                    reader_seen,
                    [StorageChanged(key="localfeed.posts.v1", context_id="writer", removed=False)],
                )


if __name__ == "__main__":
    unittest.main()
