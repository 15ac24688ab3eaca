"""Catalog store: the `submission` table and its CRUD helpers.

One row per (site, id). Tags are stored as a JSON array string so their
order survives the round trip; `posted_at` is stored as naive UTC because
SQLite has no timezone-aware column type.

Reads are lenient (undecodable rows are skipped with a warning), writes are
strict (any failure rolls back and raises StorageError).
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, select

from tagsync.db.base import ModelBase
from tagsync.domain.models import Submission, SubmissionSite, as_aware_utc
from tagsync.errors import StorageError


class SubmissionRecord(ModelBase, table=True):
    __tablename__ = "submission"  # type: ignore[assignment]

    site: str = Field(primary_key=True)
    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    title: str
    posted_at: datetime
    tags: str


def encode_tags(tags: Sequence[str]) -> str:
    return json.dumps(list(tags))


def decode_tags(raw: str) -> List[str]:
    """Decode a stored tag column.

    Raises:
        ValueError: If the value is not a JSON array of strings.
    """
    value = json.loads(raw)
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise ValueError("tags column is not a JSON array of strings")
    return value


def to_record(sub: Submission) -> SubmissionRecord:
    return SubmissionRecord(
        site=sub.site.value,
        id=sub.id,
        title=sub.title,
        posted_at=as_aware_utc(sub.posted_at).replace(tzinfo=None),
        tags=encode_tags(sub.tags),
    )


def from_record(rec: SubmissionRecord) -> Submission:
    """Convert a row back into a Submission.

    Raises:
        ValueError: If the site is unknown or the tags do not decode.
    """
    return Submission(
        id=rec.id,
        site=SubmissionSite(rec.site),
        title=rec.title,
        posted_at=as_aware_utc(rec.posted_at),
        tags=decode_tags(rec.tags),
    )


# ---------------- CRUD Helper Functions
def replace_all(session: Session, items: Iterable[Submission]) -> int:
    """
    Replace the entire catalog with `items` in a single transaction.

    If `items` repeats a (site, id) pair the first occurrence is kept.
    On failure the transaction is rolled back, so the previous catalog stays
    untouched.

    Parameters:
        session (Session): Open session; committed on success.
        items (Iterable[Submission]): The complete new catalog.

    Returns:
        int: Number of rows written.

    Raises:
        StorageError: If the delete or any insert fails.
    """
    records: List[SubmissionRecord] = []
    seen: set[tuple[SubmissionSite, int]] = set()
    for sub in items:
        if sub.key in seen:
            logger.debug(f"Ignoring duplicate {sub.site}-{sub.id} in load")
            continue
        seen.add(sub.key)
        records.append(to_record(sub))

    logger.debug(f"Replacing catalog with {len(records)} submissions.")
    try:
        for old in session.exec(select(SubmissionRecord)).all():
            session.delete(old)
        session.flush()
        session.add_all(records)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to replace catalog: {e}")
        raise StorageError(f"Failed to replace catalog: {e}") from e
    logger.success(f"Stored {len(records)} submissions")
    return len(records)


def list_all(session: Session) -> List[Submission]:
    """
    Return every decodable submission in the catalog, ordered by site and id.

    Rows with an unknown site or malformed tags are skipped with a warning
    rather than failing the whole read.

    Raises:
        StorageError: If the table cannot be queried at all.
    """
    try:
        rows = session.exec(
            select(SubmissionRecord).order_by(SubmissionRecord.site, SubmissionRecord.id)  # type: ignore[arg-type]
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read catalog: {e}")
        raise StorageError(f"Failed to read catalog: {e}") from e

    submissions: List[Submission] = []
    for row in rows:
        try:
            submissions.append(from_record(row))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping undecodable catalog row {row.site}-{row.id}: {e}")
    logger.debug(f"Loaded {len(submissions)} of {len(rows)} catalog rows")
    return submissions


def get_submission(
    session: Session, site: SubmissionSite, submission_id: int
) -> Optional[Submission]:
    rec = session.get(SubmissionRecord, (site.value, submission_id))
    if rec is None:
        logger.warning(f"Submission {site}-{submission_id} not found.")
        return None
    return from_record(rec)


def update_tags(
    session: Session, site: SubmissionSite, submission_id: int, tags: Sequence[str]
) -> None:
    """
    Overwrite the stored tags of one submission.

    Raises:
        StorageError: If the row does not exist or the update fails.
    """
    logger.debug(f"Updating stored tags for {site}-{submission_id}")
    try:
        rec = session.get(SubmissionRecord, (site.value, submission_id))
        if rec is None:
            raise StorageError(f"Submission {site}-{submission_id} is not in the catalog")
        rec.tags = encode_tags(tags)
        session.add(rec)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to update tags for {site}-{submission_id}: {e}")
        raise StorageError(f"Failed to update tags for {site}-{submission_id}: {e}") from e
