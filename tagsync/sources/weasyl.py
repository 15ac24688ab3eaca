from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
import re

import requests
from loguru import logger

from tagsync.config import WeasylConfig
from tagsync.domain.models import Submission, SubmissionSite, as_aware_utc
from tagsync.errors import ParseError
from tagsync.sources.base import SubmissionSource
from tagsync.utils.http_client import build_session, get as http_get, post as http_post

API_KEY_HEADER = "X-Weasyl-API-Key"
RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})"
)


@dataclass(frozen=True)
class GallerySummary:
    """One entry of a gallery list page; the list endpoint carries no tags."""

    id: int
    title: str
    posted_at: datetime


def parse_rfc3339(value: Any) -> datetime:
    """Parse a strict RFC 3339 timestamp into an aware UTC datetime.

    Raises:
        ParseError: If the value is not a string, or is any ISO 8601 form outside RFC 3339.
    """
    if not isinstance(value, str) or not RFC3339_PATTERN.fullmatch(value):
        raise ParseError(f"Not an RFC 3339 timestamp: {value!r}")
    try:
        parsed = datetime.fromisoformat(value.upper())
    except ValueError as e:
        raise ParseError(f"Not an RFC 3339 timestamp: {value!r}") from e
    return as_aware_utc(parsed)


def _require(payload: Dict[str, Any], key: str, kind: type, context: str) -> Any:
    value = payload.get(key)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ParseError(f"{context} is missing a valid '{key}' field")
    return value


def parse_gallery_page(payload: Any) -> tuple[List[GallerySummary], Optional[int]]:
    """Parse one gallery list response.

    Parameters:
        payload: Decoded JSON body with `submissions` and optional `nextid`.

    Returns:
        Tuple of (summaries in response order, cursor for the next page or None).
    """
    if not isinstance(payload, dict):
        raise ParseError("Gallery response is not a JSON object")
    entries = payload.get("submissions")
    if not isinstance(entries, list):
        raise ParseError("Gallery response is missing 'submissions'")
    summaries: List[GallerySummary] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ParseError("Gallery entry is not a JSON object")
        submit_id = _require(entry, "submitid", int, "Gallery entry")
        summaries.append(
            GallerySummary(
                id=submit_id,
                title=_require(entry, "title", str, f"Gallery entry {submit_id}"),
                posted_at=parse_rfc3339(entry.get("posted_at")),
            )
        )
    next_id = payload.get("nextid")
    if next_id is not None and (not isinstance(next_id, int) or isinstance(next_id, bool)):
        raise ParseError(f"Gallery response has an invalid 'nextid': {next_id!r}")
    return summaries, next_id


class WeasylSource(SubmissionSource):
    """Weasyl catalog through its JSON API.

    Listing walks the user's gallery with the `nextid` cursor; tags come from
    one detail request per submission.
    """

    site = SubmissionSite.WEASYL

    def __init__(self, config: WeasylConfig, session: requests.Session | None = None) -> None:
        """
        Parameters:
            config (WeasylConfig): Credentials, base URL and limits.
            session (requests.Session | None): Preconfigured session, mainly for
                tests; by default a new one carrying the API key header is built.
        """
        self.config = config
        self.max_workers = config.max_workers
        self._session = session or build_session(
            headers={API_KEY_HEADER: config.api_key},
            pool_size=max(10, config.max_workers),
        )

    def gallery_url(self) -> str:
        return f"{self.config.base_url}/api/users/{self.config.user}/gallery"

    def view_url(self, submission_id: int) -> str:
        return f"{self.config.base_url}/api/submissions/{submission_id}/view"

    def tags_url(self) -> str:
        return f"{self.config.base_url}/submit/tags"

    def _json(self, url: str, **kwargs: Any) -> Any:
        resp = http_get(self._session, url, timeout=self.config.timeout, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            raise ParseError(f"Could not decode JSON from {url}: {e}") from e

    def list_gallery(self) -> List[GallerySummary]:
        summaries: List[GallerySummary] = []
        next_id: Optional[int] = None
        while True:
            logger.info(f"Loading Weasyl gallery page (nextid={next_id})")
            params: Dict[str, Any] = {"count": self.config.page_size}
            if next_id is not None:
                params["nextid"] = next_id
            page, next_id = parse_gallery_page(self._json(self.gallery_url(), params=params))
            summaries.extend(page)
            if next_id is None:
                break
        logger.info(f"Discovered {len(summaries)} Weasyl submissions")
        return summaries

    def fetch_submission(self, summary: GallerySummary) -> Submission:
        logger.debug(f"Loading complete information for Weasyl submission {summary.id}")
        payload = self._json(self.view_url(summary.id))
        if not isinstance(payload, dict):
            raise ParseError(f"Weasyl submission {summary.id}: response is not a JSON object")
        context = f"Weasyl submission {summary.id}"
        tags = _require(payload, "tags", list, context)
        if not all(isinstance(tag, str) for tag in tags):
            raise ParseError(f"{context} has non-string tags")
        return Submission(
            id=_require(payload, "submitid", int, context),
            site=SubmissionSite.WEASYL,
            title=_require(payload, "title", str, context),
            posted_at=summary.posted_at,
            tags=tags,
        )

    def fetch_all(self) -> List[Submission]:
        return self.fetch_details(self.list_gallery(), self.fetch_submission)

    def apply_tags(self, submission_id: int, tags: Sequence[str]) -> None:
        logger.debug(f"Posting {len(tags)} tags to Weasyl submission {submission_id}")
        http_post(
            self._session,
            self.tags_url(),
            timeout=self.config.timeout,
            data=[("submitid", str(submission_id)), ("tags", " ".join(tags))],
        )
