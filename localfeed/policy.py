from __future__ import annotations

from typing import Iterable

from .errors import PolicyViolation

# Plain substring matching: a term inside a longer word still matches.
BLOCKED_TERMS: tuple[str, ...] = (
    "porn",
    "nude",
    "sex",
    "sexual",
    "xxx",
    "onlyfans",
    "rape",
    "kill",
    "murder",
    "shoot",
    "gun down",
    "terrorist",
    "behead",
)

_MESSAGES = {
    "post": "This post appears to violate the content policy (sexual/violent content). Please edit and try again.",
    "comment": "This comment appears to violate the content policy. Please edit and try again.",
}


def _normalize_terms(terms: Iterable[str]) -> list[str]:
    out: list[str] = []
    for t in terms:
        term = (t or "").strip().lower()
        if term:
            out.append(term)
    return out


def violates_policy(text: str, *, extra_terms: Iterable[str] = ()) -> bool:
    s = (text or "").lower()
    if not s:
        return False
    terms = list(BLOCKED_TERMS) + _normalize_terms(extra_terms)
    return any(term in s for term in terms)


def ensure_allowed(text: str, *, what: str = "post", extra_terms: Iterable[str] = ()) -> None:
    """
    Raise PolicyViolation if `text` contains a blocked term.

    The exception message is the user-facing notice for the `what` being published.
    """
    if violates_policy(text, extra_terms=extra_terms):
        raise PolicyViolation(_MESSAGES.get(what, _MESSAGES["post"]))
