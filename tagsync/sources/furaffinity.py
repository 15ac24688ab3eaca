from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import re

import requests
from bs4 import BeautifulSoup  # type: ignore
from loguru import logger

from tagsync.config import FurAffinityConfig
from tagsync.domain.models import Submission, SubmissionSite, as_aware_utc
from tagsync.errors import ConfigError, ParseError
from tagsync.sources.base import SubmissionSource
from tagsync.utils.http_client import build_session, get as http_get, post as http_post

ID_SELECTOR = ".submission-list u a"
TITLE_SELECTOR = ".submission-title h2 p"
POSTED_AT_SELECTOR = ".submission-id-sub-container strong span.popup_date"
TAG_SELECTOR = "section.tags-row a"
EDIT_FORM_SELECTOR = 'form[name="MsgForm"]'

VIEW_HREF_PATTERN = re.compile(r"^/view/(\d+)/?")
DAY_ORDINAL_PATTERN = re.compile(r"(\d{1,2})(st|nd|rd|th)")
POSTED_AT_FORMAT = "%b %d, %Y %I:%M %p"


@dataclass(frozen=True)
class EditSession:
    """Hidden form state read from one edit page and replayed by one POST.

    Every field except the tags has to be sent back unchanged, otherwise the
    site resets it. Instances are built per edit and never reused.
    """

    key: str
    category: str
    type: str
    species: str
    gender: str
    rating: str
    title: str
    message: str

    def form_fields(self, tags: Sequence[str]) -> List[Tuple[str, str]]:
        """Return the POST body that finalizes the edit with `tags` as keywords."""
        return [
            ("update", "yes"),
            ("submit", "+Finalize"),
            ("keywords", " ".join(tags)),
            ("key", self.key),
            ("cat", self.category),
            ("atype", self.type),
            ("species", self.species),
            ("gender", self.gender),
            ("rating", self.rating),
            ("title", self.title),
            ("message", self.message),
        ]


def _join_text_nodes(elem) -> str:
    return "".join(elem.strings).strip()


def _attr(elem, name: str, what: str) -> str:
    value = elem.get(name)
    if value is None:
        raise ParseError(f"Form was missing {what} value")
    return str(value)


def _select_one(root, selector: str, what: str):
    elem = root.select_one(selector)
    if elem is None:
        raise ParseError(f"Form was missing {what}")
    return elem


def parse_edit_page(html_text: str) -> EditSession:
    """Extract the fields needed to resubmit the change-info form.

    Raises:
        ParseError: If the form or any expected field is absent.
    """
    soup = BeautifulSoup(html_text, "html.parser")
    form = soup.select_one(EDIT_FORM_SELECTOR)
    if form is None:
        raise ParseError("Page was missing form")

    key = _attr(_select_one(form, 'input[name="key"]', "key element"), "value", "key")
    rating = _attr(
        _select_one(form, 'input[name="rating"][checked]', "selected rating"),
        "value",
        "selected rating",
    )
    title = _attr(_select_one(form, "#title", "title"), "value", "title")
    message = "".join(_select_one(form, "#JSMessage", "description").strings)
    # html.parser keeps the newline right after <textarea>; browsers drop it
    if message.startswith("\r\n"):
        message = message[2:]
    elif message.startswith("\n"):
        message = message[1:]

    def selected(name: str) -> str:
        option = _select_one(
            form, f'select[name="{name}"] option[selected]', f"selected {name}"
        )
        return _attr(option, "value", f"selected {name}")

    return EditSession(
        key=key,
        category=selected("cat"),
        type=selected("atype"),
        species=selected("species"),
        gender=selected("gender"),
        rating=rating,
        title=title,
        message=message,
    )


def parse_gallery_ids(html_text: str) -> List[int]:
    """Return submission ids linked from a gallery page, in page order.

    Anchors whose href is not a /view/<id>/ link are skipped.
    """
    soup = BeautifulSoup(html_text, "html.parser")
    ids: List[int] = []
    for anchor in soup.select(ID_SELECTOR):
        match = VIEW_HREF_PATTERN.search(str(anchor.get("href") or ""))
        if match:
            ids.append(int(match.group(1)))
    return ids


def resolve_timezone(name: str) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ConfigError(f"Unknown FURAFFINITY_TIMEZONE: {name!r}") from e


def parse_posted_at(raw: str, tz: tzinfo) -> datetime:
    """Parse a date such as ``"Nov 3rd, 2021 10:15 PM"`` rendered in `tz`.

    Returns:
        The moment as an aware UTC datetime.
    """
    cleaned = " ".join(DAY_ORDINAL_PATTERN.sub(r"\1", raw).split())
    try:
        naive = datetime.strptime(cleaned, POSTED_AT_FORMAT)
    except ValueError as e:
        raise ParseError(f"Unknown date format: {raw!r}") from e
    return as_aware_utc(naive.replace(tzinfo=tz))


def parse_submission_page(html_text: str, submission_id: int, tz: tzinfo) -> Submission:
    """Build a Submission from a view page.

    Raises:
        ParseError: If the title or posted-at element is missing or malformed.
    """
    soup = BeautifulSoup(html_text, "html.parser")

    title_elem = soup.select_one(TITLE_SELECTOR)
    if title_elem is None:
        raise ParseError(f"Submission {submission_id} must have title")

    posted_elem = soup.select_one(POSTED_AT_SELECTOR)
    if posted_elem is None:
        raise ParseError(f"Submission {submission_id} is missing posted at date")
    posted_raw = posted_elem.get("title")
    if not posted_raw:
        raise ParseError(f"Submission {submission_id} is missing posted at value")

    return Submission(
        id=submission_id,
        site=SubmissionSite.FURAFFINITY,
        title=_join_text_nodes(title_elem),
        posted_at=parse_posted_at(str(posted_raw), tz),
        tags=[_join_text_nodes(a) for a in soup.select(TAG_SELECTOR)],
    )


class FurAffinitySource(SubmissionSource):
    """FurAffinity catalog scraped from the logged-in gallery.

    Authentication rides on the browser session cookies `a` and `b`. Tag
    writes go through the change-info form, see `apply_tags`.
    """

    site = SubmissionSite.FURAFFINITY

    def __init__(
        self, config: FurAffinityConfig, session: Optional[requests.Session] = None
    ) -> None:
        self.config = config
        self.max_workers = config.max_workers
        self.tz = resolve_timezone(config.timezone)
        self._session = session or build_session(
            cookies={"a": config.cookie_a, "b": config.cookie_b},
            pool_size=max(10, config.max_workers),
        )

    def gallery_url(self, page: int) -> str:
        return f"{self.config.base_url}/gallery/{self.config.user}/{page}/"

    def view_url(self, submission_id: int) -> str:
        return f"{self.config.base_url}/view/{submission_id}/"

    def edit_url(self, submission_id: int) -> str:
        return f"{self.config.base_url}/controls/submissions/changeinfo/{submission_id}/"

    def _text(self, url: str) -> str:
        return http_get(self._session, url, timeout=self.config.timeout).text

    def list_ids(self) -> List[int]:
        """Walk gallery pages from 1 until a page links no submissions.

        An empty page is the only end marker the site gives. A page repeating
        the previous page's ids would never end the walk, so it is an error.
        """
        ids: List[int] = []
        previous: Optional[List[int]] = None
        page = 1
        while True:
            logger.info(f"Loading FurAffinity gallery page {page}")
            new_ids = parse_gallery_ids(self._text(self.gallery_url(page)))
            if not new_ids:
                logger.debug("No new IDs found")
                break
            if new_ids == previous:
                raise ParseError(
                    f"Gallery page {page} repeats page {page - 1}; refusing to loop"
                )
            ids.extend(new_ids)
            previous = new_ids
            page += 1
        logger.info(f"Discovered {len(ids)} FurAffinity submissions")
        return ids

    def fetch_submission(self, submission_id: int) -> Submission:
        logger.debug(f"Loading complete information for FurAffinity submission {submission_id}")
        html_text = self._text(self.view_url(submission_id))
        return parse_submission_page(html_text, submission_id, self.tz)

    def fetch_all(self) -> List[Submission]:
        return self.fetch_details(self.list_ids(), self.fetch_submission)

    def open_edit_session(self, submission_id: int) -> EditSession:
        try:
            return parse_edit_page(self._text(self.edit_url(submission_id)))
        except ParseError as e:
            raise ParseError(f"Submission {submission_id}: {e}") from e

    def apply_tags(self, submission_id: int, tags: Sequence[str]) -> None:
        """Read the change-info form, then post it back with new keywords.

        Not transactional: the form is assumed stable between the two requests.
        """
        edit = self.open_edit_session(submission_id)
        http_post(
            self._session,
            self.edit_url(submission_id),
            timeout=self.config.timeout,
            data=edit.form_fields(tags),
        )
