from datetime import datetime, timezone

import pytest
from sqlmodel import Session

from tagsync import cli, config
from tagsync.db import create_db_engine, dispose_engine, list_all, replace_all, run_migrations
from tagsync.domain.models import SubmissionSite
from tagsync.errors import AuthError
from tagsync.sources.base import SubmissionSource

CREDENTIALS = [
    "--weasyl-api-key",
    "key",
    "--weasyl-user",
    "wuser",
    "--furaffinity-cookie-a",
    "a",
    "--furaffinity-cookie-b",
    "b",
    "--furaffinity-user",
    "fuser",
]


class _StaticSource(SubmissionSource):
    def __init__(self, site, items, error=None):
        self.site = site
        self.items = items
        self.error = error

    def fetch_all(self):
        if self.error:
            raise self.error
        return self.items

    def apply_tags(self, submission_id, tags):
        raise AssertionError("not expected")


@pytest.fixture
def db_path(tmp_path, make_submission):
    path = tmp_path / "catalog.db"
    eng = create_db_engine(path)
    run_migrations(eng)
    with Session(eng) as s:
        replace_all(
            s,
            [
                make_submission(
                    1,
                    ["tag1", "tag2"],
                    title="First",
                    posted_at=datetime(2021, 11, 3, 12, 0, tzinfo=timezone.utc),
                ),
                make_submission(3, ["tag1", "tag4"], site=SubmissionSite.WEASYL, title="Third"),
            ],
        )
    dispose_engine(eng)
    return path


@pytest.fixture
def no_env_credentials(monkeypatch):
    for name in (
        "WEASYL_API_KEY",
        "WEASYL_USER",
        "FURAFFINITY_COOKIE_A",
        "FURAFFINITY_COOKIE_B",
        "FURAFFINITY_USER",
    ):
        monkeypatch.setattr(config, name, "")


def _stored(path):
    eng = create_db_engine(path)
    try:
        with Session(eng) as s:
            return {(sub.site, sub.id): sub.tags for sub in list_all(s)}
    finally:
        dispose_engine(eng)


def test_query_tags_prints_matches(db_path, capsys):
    rc = cli.main(["--submissions-database", str(db_path), "query-tags", "--search", "tag1 -tag4"])
    assert rc == 0
    out = capsys.readouterr().out.splitlines()
    lines = [line for line in out if line.startswith(("FurAffinity-", "Weasyl-"))]
    assert len(lines) == 1
    assert lines[0].startswith("FurAffinity-1 - 2021-11-0")
    assert lines[0].endswith(", First: tag1, tag2")


def test_apply_tags_dry_run_needs_no_credentials(db_path, no_env_credentials):
    rc = cli.main(
        ["--submissions-database", str(db_path), "apply-tags", "--search", "tag1", "--tags", "x", "-d"]
    )
    assert rc == 0
    assert _stored(db_path)[(SubmissionSite.FURAFFINITY, 1)] == ["tag1", "tag2"]


def test_load_requires_credentials(tmp_path, no_env_credentials):
    rc = cli.main(["--submissions-database", str(tmp_path / "x.db"), "load-submissions"])
    assert rc == 2


def test_load_submissions_replaces_catalog(db_path, monkeypatch, make_submission):
    fresh = make_submission(5, ["new"], site=SubmissionSite.WEASYL)
    monkeypatch.setattr(
        cli,
        "build_sources",
        lambda settings: {
            SubmissionSite.WEASYL: _StaticSource(SubmissionSite.WEASYL, [fresh]),
            SubmissionSite.FURAFFINITY: _StaticSource(SubmissionSite.FURAFFINITY, []),
        },
    )
    rc = cli.main(["--submissions-database", str(db_path), *CREDENTIALS, "load-submissions"])
    assert rc == 0
    assert _stored(db_path) == {(SubmissionSite.WEASYL, 5): ["new"]}


def test_load_submissions_reports_failure(db_path, monkeypatch):
    monkeypatch.setattr(
        cli,
        "build_sources",
        lambda settings: {
            SubmissionSite.WEASYL: _StaticSource(
                SubmissionSite.WEASYL, [], error=AuthError("GET gallery returned 401", status_code=401)
            ),
        },
    )
    rc = cli.main(["--submissions-database", str(db_path), *CREDENTIALS, "load-submissions"])
    assert rc == 1
    assert len(_stored(db_path)) == 2


def test_settings_from_cli_overrides(monkeypatch, tmp_path, no_env_credentials):
    captured = {}

    def fake_build(settings):
        captured["settings"] = settings
        return {}

    monkeypatch.setattr(cli, "build_sources", fake_build)
    rc = cli.main(["--submissions-database", str(tmp_path / "c.db"), *CREDENTIALS, "load-submissions"])
    assert rc == 0
    settings = captured["settings"]
    assert settings.database == tmp_path / "c.db"
    assert settings.weasyl.api_key == "key" and settings.weasyl.user == "wuser"
    assert settings.furaffinity.cookie_a == "a" and settings.furaffinity.cookie_b == "b"
    assert settings.furaffinity.user == "fuser"


def test_unknown_timezone_fails_cleanly(db_path, monkeypatch):
    monkeypatch.setattr(config, "FURAFFINITY_TIMEZONE", "Mars/Olympus")
    rc = cli.main(["--submissions-database", str(db_path), *CREDENTIALS, "load-submissions"])
    assert rc == 1
    assert len(_stored(db_path)) == 2
