from __future__ import annotations

import unittest

from localfeed.feed import matches_query, resolve_feed, share_snippet
from localfeed.models import PersistentMedia, Post


def _post(pid: str, label: str, text: str, created_at: int, *, author: str = "Ama", title: str | None = None) -> Post:
    return Post(
        id=pid,
        author_name=author,
        community_label=label,
        created_at=created_at,
        text=text,
        title=title,
    )


DENVER = "Denver, Colorado, United States"
ACCRA = "Accra, Greater Accra, Ghana"


class TestResolveFeed(unittest.TestCase):
    def setUp(self) -> None:
        self.posts = [
            _post("d2", DENVER, "Potluck on Sunday", 300),
            _post("a1", ACCRA, "hello from Osu", 250, author="Kofi"),
            _post("d1", DENVER, "Looking for a barber", 100),
        ]

    def test_local_scope_filters_by_exact_label_case_insensitive(self) -> None:
        out = resolve_feed(self.posts, DENVER.upper(), "local")
        self.assertEqual([p.id for p in out], ["d2", "d1"])

    def test_label_match_is_not_substring(self) -> None:
        out = resolve_feed(self.posts, "Denver", "local")
        self.assertEqual(out, [])

    def test_empty_query_never_falls_back(self) -> None:
        out = resolve_feed(self.posts, "Houston, Texas, United States", "local", "")
        self.assertEqual(out, [])

    def test_non_empty_query_falls_back_to_global_when_no_local_match(self) -> None:
        out = resolve_feed(self.posts, DENVER, "local", "hello")
        self.assertEqual([p.id for p in out], ["a1"])
        self.assertEqual(out, resolve_feed(self.posts, DENVER, "global", "hello"))

    def test_local_match_wins_over_global(self) -> None:
        posts = self.posts + [_post("d3", DENVER, "hello neighbours", 50)]
        out = resolve_feed(posts, DENVER, "local", "HELLO")
        self.assertEqual([p.id for p in out], ["d3"])

    def test_global_scope_returns_all_newest_first(self) -> None:
        out = resolve_feed(reversed(self.posts), DENVER, "global")
        self.assertEqual([p.id for p in out], ["d2", "a1", "d1"])

    def test_query_matches_author_and_title(self) -> None:
        posts = [
            _post("t", DENVER, "For sale", 10, title="Mountain bike"),
            _post("u", DENVER, "Other", 20, author="Bike Guy"),
        ]
        out = resolve_feed(posts, DENVER, "local", "bike")
        self.assertEqual([p.id for p in out], ["u", "t"])

    def test_equal_timestamps_keep_stored_order(self) -> None:
        posts = [_post("x", DENVER, "a", 5), _post("y", DENVER, "b", 5), _post("z", DENVER, "c", 5)]
        self.assertEqual([p.id for p in resolve_feed(posts, DENVER, "local")], ["x", "y", "z"])

    def test_unknown_scope_raises(self) -> None:
        with self.assertRaises(ValueError):
            resolve_feed(self.posts, DENVER, "nearby")  # type: ignore[arg-type]

    def test_matches_query_blank(self) -> None:
        self.assertTrue(matches_query(self.posts[0], "   "))


class TestShareSnippet(unittest.TestCase):
    def test_truncates_long_text(self) -> None:
        post = _post("p", DENVER, "x" * 300, 1)
        text = share_snippet(post, brand="LocalFeed")
        header, body = text.split("\n", 1)
        self.assertEqual(header, f"LocalFeed • {DENVER}")
        self.assertEqual(body, "x" * 220 + "…")

    def test_media_only_post(self) -> None:
        media = PersistentMedia(id="m", kind="image", url="data:image/png;base64,AA==", name="a.png")
        post = Post(id="p", author_name="Ama", community_label=DENVER, created_at=1, media=[media])
        self.assertTrue(share_snippet(post).endswith("\n(media post)"))


if __name__ == "__main__":
    unittest.main()
