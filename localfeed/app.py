from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, NoReturn, Sequence

from .activity_log import ActivityLogger
from .community import CommunityStore
from .config import resolve_state_path
from .config_schema import AppConfig
from .content_store import ContentStore
from .errors import AuthRequired, PermissionDenied
from .feed import Scope, resolve_feed, share_snippet
from .ids import MonotonicClock
from .kv_store import SQLiteKeyValueStore, StorageChange
from .media import MediaDraft, MediaManager, SessionResources
from .models import Comment, MediaAttachment, Post, PostKind
from .profile import ProfileStore
from .signals import OpenComposer, SignalBus, StorageWatcher, Topic


@dataclass(frozen=True)
class Identity:
    """What the sign-in collaborator tells us about the current user."""

    display_name: str = ""
    is_authenticated: bool = False
    privileged: bool = False


GUEST = Identity()


class LocalFeedApp:
    """
    One context's view of the local feed.

    This is the caller boundary: it checks sign-in before every mutation and
    checks authorship before deletions, then delegates to the content store.
    """

    def __init__(
        self,
        kv: SQLiteKeyValueStore,
        *,
        config: AppConfig | None = None,
        identity: Identity | None = None,
        bus: SignalBus | None = None,
        logger: ActivityLogger | None = None,
        resources: SessionResources | None = None,
        clock: MonotonicClock | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.kv = kv
        self.bus = bus or SignalBus()
        self.identity = identity or GUEST
        self.activity = logger

        self.store = ContentStore(
            kv,
            clock=clock,
            logger=logger,
            extra_terms=self.config.policy.extra_terms,
        )
        self.profile = ProfileStore(kv, self.bus)
        self.community = CommunityStore(kv, self.bus)
        self.media = MediaManager(resources, max_attachments=self.config.media.max_attachments)
        self.watcher = StorageWatcher(kv, self.bus)

        self.seeded = False
        if self.config.seed.enabled:
            self.seeded = self.store.seed_if_empty(brand=self.config.feed.brand)

    @classmethod
    def open(
        cls,
        config: AppConfig | None = None,
        *,
        identity: Identity | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "LocalFeedApp":
        cfg = config or AppConfig()
        kv = SQLiteKeyValueStore.open(resolve_state_path(cfg, environ=environ))
        logger = None
        if cfg.log.path:
            logger = ActivityLogger.open(cfg.log.path, context_id=kv.context_id)
        try:
            return cls(kv, config=cfg, identity=identity, logger=logger)
        except Exception:
            kv.close()
            if logger is not None:
                logger.close()
            raise

    def close(self) -> None:
        try:
            self.kv.close()
        finally:
            if self.activity is not None:
                self.activity.close()

    def __enter__(self) -> "LocalFeedApp":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def set_identity(self, identity: Identity) -> None:
        self.identity = identity

    def author_name(self) -> str:
        name = (self.identity.display_name or "").strip()
        return name or self.profile.display_name()

    def new_draft(self) -> MediaDraft:
        return MediaDraft(self.media)

    def publish(
        self,
        text: str,
        draft: MediaDraft | None = None,
        *,
        media: Sequence[MediaAttachment] = (),
        kind: PostKind = "post",
        title: str | None = None,
        price: str | None = None,
        when: str | None = None,
        where: str | None = None,
    ) -> Post:
        """
        Publish a post in the active community.

        Attachments move from the draft to the post only when publishing
        succeeds; a rejected post leaves the draft untouched for editing.
        """
        self._require_auth("post_create")
        attachments = list(draft.attachments if draft is not None else ()) + list(media)

        post = self.store.create_post(
            text,
            attachments,
            self.community.label(),
            self.author_name(),
            kind=kind,
            title=title,
            price=price,
            when=when,
            where=where,
        )
        if draft is not None:
            draft.take()
        return post

    def like(self, post_id: str) -> Post | None:
        self._require_auth("post_like")
        return self.store.like_post(post_id)

    def delete_post(self, post_id: str) -> bool:
        self._require_auth("post_delete")
        post = self.store.get_post(post_id)
        if post is None:
            return False
        if not self.identity.privileged and post.author_name != self.author_name():
            self._deny("post_delete", PermissionDenied("Only the author can delete this post."), post_id=post_id)

        deleted = self.store.delete_post(post_id)
        if deleted:
            # Session references created in this process are no longer reachable.
            self.media.release_all(m for m in post.media if self.media.resources.is_live(m.url))
        return deleted

    def comment(self, post_id: str, text: str) -> Comment:
        self._require_auth("comment_add")
        return self.store.add_comment(post_id, text, self.author_name())

    def delete_comment(self, comment_id: str) -> bool:
        self._require_auth("comment_delete")
        comment = self.store.find_comment(comment_id)
        if comment is None:
            return False
        if comment.author_name != self.author_name():
            self._deny(
                "comment_delete",
                PermissionDenied("Only the author can delete this comment."),
                comment_id=comment_id,
            )
        return self.store.delete_comment(comment_id)

    def feed(self, scope: Scope | None = None, query: str | None = "") -> list[Post]:
        return resolve_feed(
            self.store.posts(),
            self.community.label(),
            scope or self.config.feed.default_scope,
            query,
        )

    def share_text(self, post: Post) -> str:
        return share_snippet(post, brand=self.config.feed.brand)

    def request_composer(self, kind: PostKind = "post", prefill: str | None = None) -> int:
        return self.bus.publish(Topic.OPEN_COMPOSER, OpenComposer(kind=kind, prefill=prefill))

    def poll(self) -> list[StorageChange]:
        return self.watcher.poll()

    def _require_auth(self, action: str) -> None:
        if not self.identity.is_authenticated:
            self._deny(action, AuthRequired("Log in to post, like, or comment."))

    def _deny(self, action: str, exc: Exception, **data: object) -> NoReturn:
        if self.activity is not None:
            self.activity.rejected(action, exc, author=self.author_name(), **data)
        raise exc
