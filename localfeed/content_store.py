from __future__ import annotations

from typing import Callable, Iterable, Sequence

from .activity_log import ActivityLogger
from .errors import EmptyPostError, NotFoundError, PolicyViolation, StorageWriteError
from .ids import MonotonicClock, new_id
from .kv_store import POSTS_KEY, KeyValueStore, read_json, write_json
from .models import Comment, MediaAttachment, Post, PostKind, posts_from_json, posts_to_json
from .policy import ensure_allowed

DEFAULT_AUTHOR = "Guest"

_HOUR_MS = 60 * 60 * 1000


def _clean_optional(value: str | None) -> str | None:
    v = (value or "").strip()
    return v or None


class ContentStore:
    """
    Owns the post/comment collection for one context.

    Every mutation reads the full collection fresh, changes it in memory and
    writes the full collection back. Validation happens before the read, so a
    rejected call never writes anything. Concurrent contexts are last-write-wins.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        clock: MonotonicClock | None = None,
        logger: ActivityLogger | None = None,
        extra_terms: Sequence[str] = (),
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._kv = kv
        self._clock = clock or MonotonicClock()
        self._log = logger
        self._extra_terms = tuple(extra_terms)
        self._new_id = id_factory

    def posts(self) -> list[Post]:
        """All posts, newest first, as currently stored."""
        raw = read_json(self._kv, POSTS_KEY, [], expect=list)
        return posts_from_json(raw)

    def get_post(self, post_id: str) -> Post | None:
        pid = (post_id or "").strip()
        for p in self.posts():
            if p.id == pid:
                return p
        return None

    def comments_for(self, post_id: str) -> list[Comment]:
        post = self.get_post(post_id)
        return list(post.comments_list) if post is not None else []

    def find_comment(self, comment_id: str) -> Comment | None:
        cid = (comment_id or "").strip()
        for p in self.posts():
            for c in p.comments_list:
                if c.id == cid:
                    return c
        return None

    def create_post(
        self,
        text: str,
        media: Sequence[MediaAttachment],
        community_label: str,
        author_name: str,
        *,
        kind: PostKind = "post",
        title: str | None = None,
        price: str | None = None,
        when: str | None = None,
        where: str | None = None,
    ) -> Post:
        body = (text or "").strip()
        attachments = list(media or ())
        try:
            if not body and not attachments:
                raise EmptyPostError("A post needs text or at least one photo or video.")

            ensure_allowed(body, what="post", extra_terms=self._extra_terms)
            if title:
                ensure_allowed(title, what="post", extra_terms=self._extra_terms)
        except (EmptyPostError, PolicyViolation) as e:
            self._rejected("post_create", e, community_label=community_label)
            raise

        label = (community_label or "").strip()
        if not label:
            raise ValueError("community_label must be non-empty")

        post = Post(
            id=self._new_id(),
            author_name=(author_name or "").strip() or DEFAULT_AUTHOR,
            community_label=label,
            created_at=self._clock.now_ms(),
            kind=kind,
            text=body,
            media=attachments,
            title=_clean_optional(title),
            price=_clean_optional(price),
            when=_clean_optional(when),
            where=_clean_optional(where),
        )

        posts = self.posts()
        posts.insert(0, post)
        self._save(posts, action="post_create")

        self._info(
            "post_created",
            post_id=post.id,
            kind=post.kind,
            community_label=post.community_label,
            media=len(post.media),
        )
        return post

    def like_post(self, post_id: str) -> Post | None:
        """Add exactly one like. Repeated calls keep counting; unknown ids are a no-op."""
        pid = (post_id or "").strip()
        posts = self.posts()

        for i, p in enumerate(posts):
            if p.id == pid:
                liked = p.model_copy(update={"likes": p.likes + 1})
                posts[i] = liked
                self._save(posts, action="post_like")
                self._info("post_liked", post_id=pid, likes=liked.likes)
                return liked

        return None

    def delete_post(self, post_id: str) -> bool:
        """Remove a post together with its comments. Returns False if it was already gone."""
        pid = (post_id or "").strip()
        posts = self.posts()
        kept = [p for p in posts if p.id != pid]
        if len(kept) == len(posts):
            return False

        self._save(kept, action="post_delete")
        self._info("post_deleted", post_id=pid)
        return True

    def add_comment(self, post_id: str, text: str, author_name: str) -> Comment:
        body = (text or "").strip()
        pid = (post_id or "").strip()
        try:
            if not body:
                raise EmptyPostError("A comment needs some text.")
            ensure_allowed(body, what="comment", extra_terms=self._extra_terms)
        except (EmptyPostError, PolicyViolation) as e:
            self._rejected("comment_add", e, post_id=pid)
            raise

        posts = self.posts()
        for i, p in enumerate(posts):
            if p.id != pid:
                continue

            comment = Comment(
                id=self._new_id(),
                post_id=pid,
                author_name=(author_name or "").strip() or DEFAULT_AUTHOR,
                text=body,
                created_at=self._clock.now_ms(),
            )
            posts[i] = p.model_copy(update={"comments_list": [*p.comments_list, comment]})
            self._save(posts, action="comment_add")
            self._info("comment_added", post_id=pid, comment_id=comment.id, comments=posts[i].comments)
            return comment

        err = NotFoundError(f"Post not found: {pid}")
        self._rejected("comment_add", err, post_id=pid)
        raise err

    def delete_comment(self, comment_id: str) -> bool:
        cid = (comment_id or "").strip()
        posts = self.posts()
        for i, p in enumerate(posts):
            remaining = [c for c in p.comments_list if c.id != cid]
            if len(remaining) == len(p.comments_list):
                continue

            posts[i] = p.model_copy(update={"comments_list": remaining})
            self._save(posts, action="comment_delete")
            self._info("comment_deleted", post_id=p.id, comment_id=cid)
            return True

        return False

    def seed_if_empty(self, *, brand: str = "LocalFeed", now_ms: int | None = None) -> bool:
        """Write two welcome posts when the store holds no posts at all."""
        if self.posts():
            return False

        now = self._clock.now_ms() if now_ms is None else int(now_ms)
        seeded = [
            Post(
                id=self._new_id(),
                author_name=brand,
                community_label="Denver, Colorado, United States",
                created_at=now - 6 * _HOUR_MS,
                text=(
                    f"Welcome to {brand}. Guests can preview community posts. "
                    "Log in to post, like, comment, and message."
                ),
            ),
            Post(
                id=self._new_id(),
                author_name="Zaq",
                community_label="Accra, Greater Accra, Ghana",
                created_at=now - 3 * 24 * _HOUR_MS,
                text="This is a preview post. Switch your location to see other communities.",
                likes=2,
            ),
        ]
        self._save(seeded, action="posts_seed")
        self._info("posts_seeded", count=len(seeded))
        return True

    def _save(self, posts: Iterable[Post], *, action: str) -> None:
        try:
            write_json(self._kv, POSTS_KEY, posts_to_json(posts))
        except StorageWriteError as e:
            if self._log is not None:
                self._log.failed(action, e, key=POSTS_KEY)
            raise

    def _info(self, event: str, **data: object) -> None:
        if self._log is not None:
            self._log.info(event, **data)

    def _rejected(self, action: str, exc: Exception, **data: object) -> None:
        if self._log is not None:
            self._log.rejected(action, exc, **data)
