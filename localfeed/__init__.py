from __future__ import annotations

from .app import GUEST, Identity, LocalFeedApp
from .config import load_config
from .config_schema import AppConfig
from .content_store import ContentStore
from .errors import (
    ConfigError,
    EmptyPostError,
    PolicyViolation,
    StorageParseError,
    StorageWriteError,
    UnsupportedMediaType,
)
from .feed import resolve_feed
from .kv_store import SQLiteKeyValueStore
from .media import MediaDraft, MediaFile, MediaManager
from .models import Comment, EphemeralMedia, PersistentMedia, Post
from .policy import violates_policy
from .signals import SignalBus, SubscriptionScope, Topic

__all__ = [
    "AppConfig",
    "Comment",
    "ConfigError",
    "ContentStore",
    "EmptyPostError",
    "EphemeralMedia",
    "GUEST",
    "Identity",
    "LocalFeedApp",
    "MediaDraft",
    "MediaFile",
    "MediaManager",
    "PersistentMedia",
    "PolicyViolation",
    "Post",
    "SQLiteKeyValueStore",
    "SignalBus",
    "StorageParseError",
    "StorageWriteError",
    "SubscriptionScope",
    "Topic",
    "UnsupportedMediaType",
    "load_config",
    "resolve_feed",
    "violates_policy",
]
