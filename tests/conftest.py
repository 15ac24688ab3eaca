import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

repo_root = Path(__file__).resolve().parents[1]
tests_dir = Path(__file__).resolve().parent
for path in (repo_root, tests_dir):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


@pytest.fixture
def engine(tmp_path):
    """Migrated SQLite catalog in a temporary directory."""
    from tagsync.db import create_db_engine, dispose_engine, run_migrations

    eng = create_db_engine(tmp_path / "submissions.db")
    run_migrations(eng)
    yield eng
    dispose_engine(eng)


@pytest.fixture
def make_submission():
    from tagsync.domain.models import Submission, SubmissionSite

    def _make(id, tags, site=SubmissionSite.FURAFFINITY, title="test", posted_at=None):
        return Submission(
            id=id,
            site=site,
            title=title,
            posted_at=posted_at or datetime(2021, 11, 3, 12, 0, tzinfo=timezone.utc),
            tags=list(tags),
        )

    return _make
