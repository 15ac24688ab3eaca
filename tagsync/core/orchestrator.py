from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Set

from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session

from tagsync.core.tags import apply_change, diff, query_submissions
from tagsync.db import list_all, replace_all, update_tags
from tagsync.domain.models import Submission, SubmissionSite
from tagsync.sources.base import SubmissionSource


@dataclass
class TagUpdate:
    """Planned (dry run) or applied tag change for one submission."""

    submission: Submission
    new_tags: List[str]
    added: Set[str] = field(default_factory=set)
    removed: Set[str] = field(default_factory=set)


def load_all(engine: Engine, sources: Mapping[SubmissionSite, SubmissionSource]) -> int:
    """Fetch every source, then replace the catalog in one transaction.

    Nothing is written until every source has returned its full catalog, so a
    failure in any list or detail phase leaves the previous catalog in place.

    Returns:
        int: Number of submissions stored.
    """
    collected: List[Submission] = []
    for site, source in sources.items():
        logger.info(f"Loading submissions from {site}")
        items = source.fetch_all()
        logger.info(f"Loaded {len(items)} submissions from {site}")
        collected.extend(items)

    with Session(engine) as session:
        return replace_all(session, collected)


def query(engine: Engine, search: str) -> List[Submission]:
    """Return stored submissions matching `search`."""
    with Session(engine) as session:
        submissions = list_all(session)
    matched = query_submissions(submissions, search)
    logger.debug(f"Query {search!r} matched {len(matched)} of {len(submissions)}")
    return matched


def plan_updates(submissions: List[Submission], change: str) -> List[TagUpdate]:
    updates: List[TagUpdate] = []
    for sub in submissions:
        new_tags = apply_change(sub.tags, change)
        added, removed = diff(sub.tags, new_tags)
        updates.append(TagUpdate(sub, new_tags, added, removed))
    return updates


def log_diff(update: TagUpdate) -> None:
    sub = update.submission
    logger.info(f"Dry run {sub.site}-{sub.id}: Adding tags: {', '.join(sorted(update.added))}")
    logger.info(
        f"Dry run {sub.site}-{sub.id}: Removing tags: {', '.join(sorted(update.removed))}"
    )


def apply_tags(
    engine: Engine,
    sources: Mapping[SubmissionSite, SubmissionSource],
    search: str,
    change: str,
    *,
    dry_run: bool = False,
) -> List[TagUpdate]:
    """Apply `change` to every stored submission matching `search`.

    Write-backs run one at a time: origin first, then the local row. The first
    failure propagates; submissions already updated stay updated.

    Parameters:
        engine: Catalog database engine.
        sources: Source per site used for write-back.
        search: Tag query selecting submissions.
        change: Tag change string to apply.
        dry_run: Only log the per-submission diff.

    Returns:
        The planned updates (dry run) or the updates that were applied.
    """
    updates = plan_updates(query(engine, search), change)
    if dry_run:
        for update in updates:
            log_diff(update)
        return updates

    applied: List[TagUpdate] = []
    with Session(engine) as session:
        for update in updates:
            sub = update.submission
            logger.info(f"Updating tags {sub.site}-{sub.id}: Setting tags to: {', '.join(update.new_tags)}")
            sources[sub.site].apply_tags(sub.id, update.new_tags)
            update_tags(session, sub.site, sub.id, update.new_tags)
            applied.append(update)
    logger.success(f"Updated tags on {len(applied)} submissions")
    return applied
