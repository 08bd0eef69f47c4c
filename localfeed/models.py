from __future__ import annotations

import logging
from typing import Any, Iterable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, model_validator

logger = logging.getLogger(__name__)

MediaKind = Literal["image", "video"]
PostKind = Literal["post", "ask", "sell", "event"]

POST_KINDS: tuple[str, ...] = ("post", "ask", "sell", "event")


class _MediaBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    kind: MediaKind
    url: str
    name: str = ""


class PersistentMedia(_MediaBase):
    """Media encoded inline (a `data:` URL); survives reloads."""

    persistent: Literal[True] = True


class EphemeralMedia(_MediaBase):
    """
    Media held as a session reference (a `blob:` URL).

    The reference dies with the session and must be released exactly once.
    `released` is session state and is never written to storage.
    """

    persistent: Literal[False] = False
    released: bool = Field(default=False, exclude=True)


MediaAttachment = Union[PersistentMedia, EphemeralMedia]


class Comment(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str
    post_id: str = Field(alias="postId")
    author_name: str = Field(alias="authorName")
    text: str = Field(min_length=1)
    created_at: int = Field(alias="createdAt", ge=0)


class Post(BaseModel):
    """
    A feed entry scoped to one community label.

    `author_name` and `community_label` are snapshots taken at creation; later
    profile or community changes never rewrite them.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str
    author_name: str = Field(alias="authorName")
    community_label: str = Field(alias="communityLabel")
    created_at: int = Field(alias="createdAt", ge=0)
    kind: PostKind = "post"
    text: str = ""
    media: list[MediaAttachment] = Field(default_factory=list)
    likes: int = Field(default=0, ge=0)
    comments_list: list[Comment] = Field(default_factory=list, alias="commentsList")

    title: str | None = None
    price: str | None = None
    when: str | None = None
    where: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def comments(self) -> int:
        return len(self.comments_list)

    @model_validator(mode="after")
    def _text_or_media(self) -> "Post":
        if not self.text.strip() and not self.media:
            raise ValueError("post must have text or at least one media attachment")
        return self

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def posts_to_json(posts: Iterable[Post]) -> list[dict[str, Any]]:
    return [p.to_json() for p in posts]


def posts_from_json(items: Iterable[Any]) -> list[Post]:
    """
    Decode stored post records, skipping the ones that no longer validate.

    One bad record must not hide the rest of the feed.
    """
    out: list[Post] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("post_record_skipped index=%s reason=not_an_object", index)
            continue
        try:
            out.append(Post.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "post_record_skipped index=%s id=%s errors=%s",
                index,
                item.get("id"),
                e.error_count(),
            )
    return out
