"""Tag query and tag change mini-language.

Both languages are space separated token lists. In a query a leading ``-``
excludes a tag; in a change it removes one. Matching and removal compare
case-insensitively, while :func:`diff` compares exact strings so casing edits
stay visible to the operator.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, NamedTuple, Sequence, Set, Tuple

from tagsync.domain.models import Submission

EXCLUDE_PREFIX = "-"


class TagQuery(NamedTuple):
    """Parsed query: every required tag must be present, no excluded tag may be."""

    required: FrozenSet[str]
    excluded: FrozenSet[str]


def _tokens(text: str) -> List[str]:
    # Single-space split; empty tokens come from doubled spaces and mean nothing.
    return [tok for tok in (text or "").split(" ") if tok]


def _split_prefixed(tokens: Iterable[str]) -> Tuple[List[str], List[str]]:
    plain: List[str] = []
    prefixed: List[str] = []
    for tok in tokens:
        if tok.startswith(EXCLUDE_PREFIX):
            stripped = tok[len(EXCLUDE_PREFIX) :]
            if stripped:
                prefixed.append(stripped)
        else:
            plain.append(tok)
    return plain, prefixed


def parse_query(query: str) -> TagQuery:
    """Parse a query string into lower-cased required and excluded tag sets.

    Parameters:
        query: e.g. ``"tag1 -tag4"``.

    Returns:
        TagQuery with ``required={"tag1"}`` and ``excluded={"tag4"}`` for the
        example above.
    """
    required, excluded = _split_prefixed(tok.lower() for tok in _tokens(query))
    return TagQuery(required=frozenset(required), excluded=frozenset(excluded))


def matches(tags: Iterable[str], query: TagQuery) -> bool:
    """Return True if `tags` satisfy `query`, comparing case-insensitively."""
    present = {tag.lower() for tag in tags}
    return query.required <= present and not (query.excluded & present)


def query_submissions(
    submissions: Iterable[Submission], query: str
) -> List[Submission]:
    """Filter submissions by a query string, keeping input order."""
    parsed = parse_query(query)
    return [sub for sub in submissions if matches(sub.tags, parsed)]


def apply_change(existing: Sequence[str], change: str) -> List[str]:
    """Apply a change string to a tag list and return the new list.

    Additions keep their case and are appended in order (duplicates are not
    collapsed). Removals are applied last over existing plus added tags and
    match case-insensitively, so ``"foo -foo"`` leaves no ``foo`` behind.

    Parameters:
        existing: Current tags of a submission.
        change: e.g. ``"tag3 -tag2"``.

    Returns:
        A new list; `existing` is not modified.
    """
    additions, removals = _split_prefixed(_tokens(change))
    removed = {tag.lower() for tag in removals}
    combined = list(existing) + additions
    return [tag for tag in combined if tag.lower() not in removed]


def diff(old: Iterable[str], new: Iterable[str]) -> Tuple[Set[str], Set[str]]:
    """Return ``(added, removed)`` as exact, case-sensitive set differences."""
    old_set = set(old)
    new_set = set(new)
    return new_set - old_set, old_set - new_set
