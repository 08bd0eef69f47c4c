from __future__ import annotations

from typing import Iterable, Literal

from .models import Post

Scope = Literal["local", "global"]

SCOPES: tuple[str, ...] = ("local", "global")


def normalize_query(value: str | None) -> str:
    return (value or "").strip().lower()


def matches_query(post: Post, query: str) -> bool:
    """Case-insensitive substring match over author, body and title."""
    q = normalize_query(query)
    if not q:
        return True
    fields = (post.author_name, post.text, post.title or "")
    return any(q in (f or "").lower() for f in fields)


def in_community(post: Post, community_label: str) -> bool:
    return (post.community_label or "").strip().lower() == (community_label or "").strip().lower()


def resolve_feed(
    posts: Iterable[Post],
    community_label: str,
    scope: Scope = "local",
    query: str | None = "",
) -> list[Post]:
    """
    Compute the ordered, filtered slice of posts to show.

    Local scope falls back to the global result only when a non-empty query
    finds nothing locally; an empty query stays strictly local.
    """
    if scope not in SCOPES:
        raise ValueError(f"scope must be one of {SCOPES}, got {scope!r}")

    q = normalize_query(query)
    all_posts = list(posts)

    global_matches = [p for p in all_posts if matches_query(p, q)]
    if scope == "global":
        result = global_matches
    else:
        local_matches = [p for p in global_matches if in_community(p, community_label)]
        result = global_matches if (q and not local_matches) else local_matches

    # sorted() is stable: equal timestamps keep their stored order.
    return sorted(result, key=lambda p: p.created_at, reverse=True)


def share_snippet(post: Post, *, brand: str = "LocalFeed", limit: int = 220) -> str:
    text = (post.text or "").strip()
    if not text:
        snippet = "(media post)"
    elif len(text) > limit:
        snippet = text[:limit] + "…"
    else:
        snippet = text
    return f"{brand} • {post.community_label}\n{snippet}"
