import pytest
from sqlmodel import Session

from fakes import DummyResponse, FakeSession
from tagsync.config import WeasylConfig
from tagsync.core import orchestrator
from tagsync.db import list_all, replace_all
from tagsync.domain.models import SubmissionSite
from tagsync.errors import ParseError, TransportError
from tagsync.sources.base import SubmissionSource
from tagsync.sources.weasyl import WeasylSource


class RecordingSource(SubmissionSource):
    def __init__(self, site, items=(), fail_on=None, error=None):
        self.site = site
        self.items = list(items)
        self.fail_on = fail_on
        self.error = error
        self.writes = []

    def fetch_all(self):
        if self.error:
            raise self.error
        return list(self.items)

    def apply_tags(self, submission_id, tags):
        if submission_id == self.fail_on:
            raise TransportError(f"POST failed for {submission_id}", status_code=500)
        self.writes.append((submission_id, list(tags)))


def _stored(engine):
    with Session(engine) as s:
        return {(sub.site, sub.id): sub.tags for sub in list_all(s)}


def test_load_all_replaces_catalog_from_every_source(engine, make_submission):
    with Session(engine) as s:
        replace_all(s, [make_submission(99, ["stale"])])

    sources = {
        SubmissionSite.WEASYL: RecordingSource(
            SubmissionSite.WEASYL, [make_submission(1, ["a"], site=SubmissionSite.WEASYL)]
        ),
        SubmissionSite.FURAFFINITY: RecordingSource(
            SubmissionSite.FURAFFINITY, [make_submission(1, ["b"]), make_submission(2, [])]
        ),
    }

    assert orchestrator.load_all(engine, sources) == 3
    assert _stored(engine) == {
        (SubmissionSite.WEASYL, 1): ["a"],
        (SubmissionSite.FURAFFINITY, 1): ["b"],
        (SubmissionSite.FURAFFINITY, 2): [],
    }


def test_load_all_failure_keeps_previous_catalog(engine, make_submission):
    with Session(engine) as s:
        replace_all(s, [make_submission(99, ["stale"])])

    sources = {
        SubmissionSite.WEASYL: RecordingSource(
            SubmissionSite.WEASYL, [make_submission(1, ["a"], site=SubmissionSite.WEASYL)]
        ),
        SubmissionSite.FURAFFINITY: RecordingSource(
            SubmissionSite.FURAFFINITY, error=ParseError("Submission 5 must have title")
        ),
    }

    with pytest.raises(ParseError):
        orchestrator.load_all(engine, sources)
    assert _stored(engine) == {(SubmissionSite.FURAFFINITY, 99): ["stale"]}


def test_load_all_detail_failure_partway_keeps_previous_catalog(engine, make_submission):
    """A real source failing in its detail phase must not touch the store."""
    with Session(engine) as s:
        replace_all(s, [make_submission(99, ["stale"])])

    base = "https://weasyl.test"
    gallery = f"{base}/api/users/u/gallery"
    entries = [
        {"submitid": i, "title": str(i), "posted_at": "2021-11-03T10:00:00Z"} for i in (1, 2, 3)
    ]
    routes = {
        gallery: DummyResponse(200, gallery, payload={"submissions": entries, "nextid": None}),
        f"{base}/api/submissions/1/view": DummyResponse(
            200, "", payload={"submitid": 1, "title": "1", "tags": ["a"]}
        ),
        f"{base}/api/submissions/2/view": DummyResponse(502, f"{base}/api/submissions/2/view"),
        f"{base}/api/submissions/3/view": DummyResponse(
            200, "", payload={"submitid": 3, "title": "3", "tags": []}
        ),
    }
    source = WeasylSource(
        WeasylConfig(api_key="k", user="u", base_url=base, max_workers=2),
        session=FakeSession(routes),
    )

    with pytest.raises(TransportError):
        orchestrator.load_all(engine, {SubmissionSite.WEASYL: source})
    assert _stored(engine) == {(SubmissionSite.FURAFFINITY, 99): ["stale"]}


def test_query_filters_stored_catalog(engine, make_submission):
    with Session(engine) as s:
        replace_all(
            s,
            [
                make_submission(1, ["tag1", "tag2"]),
                make_submission(2, ["tag3"]),
                make_submission(3, ["Tag1", "tag4"]),
            ],
        )
    assert [sub.id for sub in orchestrator.query(engine, "TAG1")] == [1, 3]
    assert [sub.id for sub in orchestrator.query(engine, "tag1 -tag4")] == [1]


def test_apply_tags_dry_run_changes_nothing(engine, make_submission):
    with Session(engine) as s:
        replace_all(s, [make_submission(1, ["fox", "Sketch"]), make_submission(2, ["wolf"])])
    source = RecordingSource(SubmissionSite.FURAFFINITY)

    updates = orchestrator.apply_tags(
        engine, {SubmissionSite.FURAFFINITY: source}, "fox", "vulpine -sketch", dry_run=True
    )

    assert len(updates) == 1
    assert updates[0].new_tags == ["fox", "vulpine"]
    assert updates[0].added == {"vulpine"}
    assert updates[0].removed == {"Sketch"}
    assert source.writes == []
    assert _stored(engine)[(SubmissionSite.FURAFFINITY, 1)] == ["fox", "Sketch"]


def test_apply_tags_writes_back_and_updates_store(engine, make_submission):
    with Session(engine) as s:
        replace_all(
            s,
            [
                make_submission(1, ["fox"]),
                make_submission(7, ["fox", "old"], site=SubmissionSite.WEASYL),
                make_submission(2, ["wolf"]),
            ],
        )
    fa = RecordingSource(SubmissionSite.FURAFFINITY)
    weasyl = RecordingSource(SubmissionSite.WEASYL)

    applied = orchestrator.apply_tags(
        engine,
        {SubmissionSite.FURAFFINITY: fa, SubmissionSite.WEASYL: weasyl},
        "fox",
        "new -OLD",
    )

    assert len(applied) == 2
    assert fa.writes == [(1, ["fox", "new"])]
    assert weasyl.writes == [(7, ["fox", "new"])]
    stored = _stored(engine)
    assert stored[(SubmissionSite.FURAFFINITY, 1)] == ["fox", "new"]
    assert stored[(SubmissionSite.WEASYL, 7)] == ["fox", "new"]
    assert stored[(SubmissionSite.FURAFFINITY, 2)] == ["wolf"]


def test_apply_tags_failure_keeps_earlier_updates(engine, make_submission):
    with Session(engine) as s:
        replace_all(s, [make_submission(1, ["fox"]), make_submission(2, ["fox"])])
    fa = RecordingSource(SubmissionSite.FURAFFINITY, fail_on=2)

    with pytest.raises(TransportError):
        orchestrator.apply_tags(engine, {SubmissionSite.FURAFFINITY: fa}, "fox", "new")

    stored = _stored(engine)
    assert stored[(SubmissionSite.FURAFFINITY, 1)] == ["fox", "new"]
    assert stored[(SubmissionSite.FURAFFINITY, 2)] == ["fox"]
