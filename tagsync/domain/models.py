"""Domain-level records shared by sources, the store and the orchestrator.

`Submission` is the normalized shape every source produces; the store
persists it keyed by (site, id) and hands it back on reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import List, Optional, Tuple


class SubmissionSite(StrEnum):
    """The two origin sites. The value is what the store persists."""

    FURAFFINITY = "FurAffinity"
    WEASYL = "Weasyl"


def as_aware_utc(dt: Optional[datetime]) -> datetime:
    """Convert a datetime to timezone-aware UTC.

    Args:
        dt: Datetime to convert (naive values are taken to be UTC)

    Returns:
        Timezone-aware UTC datetime
    """
    if dt is None:
        raise ValueError("datetime is required")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Submission:
    """One creative-work record at an origin site.

    Attributes:
        id: Identifier, unique only within `site`.
        site: Origin site.
        title: Free-text title.
        posted_at: Posting time, always timezone-aware UTC.
        tags: Tags in origin order; case preserved, duplicates kept.
    """

    id: int
    site: SubmissionSite
    title: str
    posted_at: datetime
    tags: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        object.__setattr__(self, "posted_at", as_aware_utc(self.posted_at))
        object.__setattr__(self, "tags", list(self.tags))

    @property
    def key(self) -> Tuple[SubmissionSite, int]:
        return (self.site, self.id)
