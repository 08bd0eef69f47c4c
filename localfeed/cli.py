from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence

from .app import GUEST, Identity, LocalFeedApp
from .config import load_config
from .config_schema import AppConfig
from .errors import (
    AuthRequired,
    ConfigError,
    EmptyPostError,
    NotFoundError,
    PermissionDenied,
    PolicyViolation,
    StorageError,
    UnsupportedMediaType,
)
from .feed import SCOPES
from .media import MediaFile
from .models import POST_KINDS, Post


# Refusals the user can fix; the store and app already log the ones they raise.
_USAGE_ERRORS = (
    ConfigError,
    EmptyPostError,
    PolicyViolation,
    UnsupportedMediaType,
    AuthRequired,
    PermissionDenied,
    NotFoundError,
    ValueError,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="localfeed")
    parser.add_argument("--config", help="Path to YAML config file (defaults apply when omitted).")
    parser.add_argument("--state", help="Path to the state file; overrides storage.path.")
    parser.add_argument(
        "--as",
        dest="user",
        help="Act as this signed-in display name. Without it you browse as a guest.",
    )
    parser.add_argument(
        "--privileged",
        action="store_true",
        help="Act with moderator rights (may delete any post).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    seed = subparsers.add_parser("seed", help="Write the welcome posts if the feed is empty.")
    seed.set_defaults(_handler=_cmd_seed)

    post = subparsers.add_parser("post", help="Publish a post in the active community.")
    post.add_argument("text", nargs="?", default="", help="Post body.")
    post.add_argument("--file", action="append", default=[], help="Attach an image or video (repeatable).")
    post.add_argument("--kind", choices=POST_KINDS, default="post")
    post.add_argument("--title")
    post.add_argument("--price")
    post.add_argument("--when")
    post.add_argument("--where")
    post.set_defaults(_handler=_cmd_post)

    like = subparsers.add_parser("like", help="Add one like to a post.")
    like.add_argument("post_id")
    like.set_defaults(_handler=_cmd_like)

    delete = subparsers.add_parser("delete", help="Delete a post and its comments.")
    delete.add_argument("post_id")
    delete.set_defaults(_handler=_cmd_delete)

    comment = subparsers.add_parser("comment", help="Comment on a post.")
    comment.add_argument("post_id")
    comment.add_argument("text")
    comment.set_defaults(_handler=_cmd_comment)

    uncomment = subparsers.add_parser("uncomment", help="Delete one of your comments.")
    uncomment.add_argument("comment_id")
    uncomment.set_defaults(_handler=_cmd_uncomment)

    feed = subparsers.add_parser("feed", help="Show the feed for the active community.")
    feed.add_argument("--scope", choices=SCOPES)
    feed.add_argument("--query", default="")
    feed.add_argument("--json", action="store_true", help="Print posts as JSON.")
    feed.set_defaults(_handler=_cmd_feed)

    community = subparsers.add_parser("community", help="Show or change the active community.")
    community.add_argument("--country")
    community.add_argument("--region")
    community.add_argument("--city")
    community.set_defaults(_handler=_cmd_community)

    profile = subparsers.add_parser("profile", help="Show or change the cached display name.")
    profile.add_argument("--name")
    profile.set_defaults(_handler=_cmd_profile)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _config_from_args(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config) if args.config else AppConfig()
    if args.state:
        cfg = cfg.model_copy(update={"storage": cfg.storage.model_copy(update={"path": args.state})})
    return cfg


def _identity_from_args(args: argparse.Namespace) -> Identity:
    name = (args.user or "").strip()
    if not name:
        return GUEST
    return Identity(display_name=name, is_authenticated=True, privileged=bool(args.privileged))


def _print_post(post: Post) -> None:
    print(f"post_id={post.id}")
    print(f"author={post.author_name}")
    print(f"community={post.community_label}")
    print(f"likes={post.likes}")
    print(f"comments={post.comments}")


def _cmd_seed(app: LocalFeedApp, args: argparse.Namespace) -> int:
    seeded = app.seeded or app.store.seed_if_empty(brand=app.config.feed.brand)
    print(f"seeded={str(seeded).lower()}")
    print(f"posts={len(app.store.posts())}")
    return 0


def _cmd_post(app: LocalFeedApp, args: argparse.Namespace) -> int:
    with app.new_draft() as draft:
        if args.file:
            draft.add_files([MediaFile.from_path(p) for p in args.file])
        post = app.publish(
            args.text,
            draft,
            kind=args.kind,
            title=args.title,
            price=args.price,
            when=args.when,
            where=args.where,
        )
    _print_post(post)
    print(f"media={len(post.media)}")
    return 0


def _cmd_like(app: LocalFeedApp, args: argparse.Namespace) -> int:
    post = app.like(args.post_id)
    if post is None:
        _eprint(f"Post not found: {args.post_id}")
        return 4
    _print_post(post)
    return 0


def _cmd_delete(app: LocalFeedApp, args: argparse.Namespace) -> int:
    deleted = app.delete_post(args.post_id)
    print(f"deleted={str(deleted).lower()}")
    return 0


def _cmd_comment(app: LocalFeedApp, args: argparse.Namespace) -> int:
    c = app.comment(args.post_id, args.text)
    print(f"comment_id={c.id}")
    print(f"post_id={c.post_id}")
    print(f"author={c.author_name}")
    return 0


def _cmd_uncomment(app: LocalFeedApp, args: argparse.Namespace) -> int:
    deleted = app.delete_comment(args.comment_id)
    print(f"deleted={str(deleted).lower()}")
    return 0


def _cmd_feed(app: LocalFeedApp, args: argparse.Namespace) -> int:
    posts = app.feed(args.scope, args.query)
    if args.json:
        print(json.dumps([p.to_json() for p in posts], indent=2, ensure_ascii=False))
        return 0

    print(f"community={app.community.label()}")
    print(f"count={len(posts)}")
    for p in posts:
        text = p.text.replace("\n", " ")
        print(f"{p.id}\t{p.author_name}\t{p.community_label}\tlikes={p.likes}\tcomments={p.comments}\t{text}")
    return 0


def _cmd_community(app: LocalFeedApp, args: argparse.Namespace) -> int:
    if args.country or args.region or args.city:
        current = app.community.selection()
        app.community.set_selection(
            args.country if args.country is not None else current.country,
            args.region if args.region is not None else current.region,
            args.city if args.city is not None else current.city,
        )
    print(f"community={app.community.label()}")
    return 0


def _cmd_profile(app: LocalFeedApp, args: argparse.Namespace) -> int:
    if args.name is not None:
        app.profile.set_display_name(args.name)
    print(f"display_name={app.profile.display_name()}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        cfg = _config_from_args(args)
        handler = getattr(args, "_handler")
        # An explicit --state wins over the environment override.
        environ = {} if args.state else None
        with LocalFeedApp.open(cfg, identity=_identity_from_args(args), environ=environ) as app:
            try:
                return int(handler(app, args))
            except _USAGE_ERRORS:
                raise
            except Exception as e:
                if app.activity is not None:
                    app.activity.failed("command", e, command=args.command)
                raise
    except _USAGE_ERRORS as e:
        _eprint(str(e))
        return 2
    except StorageError as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
