"""Add or remove tags on FurAffinity and Weasyl submissions based on existing tags."""

from __future__ import annotations

import argparse
from typing import List, Optional

from loguru import logger

from tagsync.config import Settings
from tagsync.core import orchestrator
from tagsync.db import create_db_engine, dispose_engine, run_migrations
from tagsync.domain.models import Submission
from tagsync.errors import TagSyncError
from tagsync.sources import build_sources


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tagsync", description=__doc__)
    parser.add_argument(
        "--submissions-database",
        default=None,
        help="Path to database file to store information about loaded submissions "
        "(env SUBMISSIONS_DATABASE, default submissions.db).",
    )
    parser.add_argument(
        "--weasyl-api-key", default=None, help="API key to access Weasyl submissions."
    )
    parser.add_argument("--weasyl-user", default=None, help="Weasyl username.")
    parser.add_argument(
        "--furaffinity-cookie-a", default=None, help="FurAffinity cookie 'a'."
    )
    parser.add_argument(
        "--furaffinity-cookie-b", default=None, help="FurAffinity cookie 'b'."
    )
    parser.add_argument("--furaffinity-user", default=None, help="FurAffinity username.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("load-submissions", help="Download all submissions from sites.")

    q = sub.add_parser("query-tags", help="Locally query submissions based on tags.")
    q.add_argument("--search", required=True, help="Tags to include in search results.")

    a = sub.add_parser(
        "apply-tags",
        help="Update submissions matching a given search to include new tags.",
    )
    a.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Only print out changes instead of applying them.",
    )
    a.add_argument(
        "--search", required=True, help="Search for submissions with given tags to update."
    )
    a.add_argument(
        "--tags", required=True, help="New tags to apply to matched submissions."
    )
    return parser


def format_submission(sub: Submission) -> str:
    posted = sub.posted_at.astimezone().strftime("%Y-%m-%d")
    return f"{sub.site}-{sub.id} - {posted}, {sub.title}: {', '.join(sub.tags)}"


def _needs_sources(args: argparse.Namespace) -> bool:
    if args.command == "load-submissions":
        return True
    return args.command == "apply-tags" and not args.dry_run


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(
        submissions_database=args.submissions_database,
        weasyl_api_key=args.weasyl_api_key,
        weasyl_user=args.weasyl_user,
        furaffinity_cookie_a=args.furaffinity_cookie_a,
        furaffinity_cookie_b=args.furaffinity_cookie_b,
        furaffinity_user=args.furaffinity_user,
    )

    if _needs_sources(args):
        missing = settings.missing_credentials()
        if missing:
            logger.error(f"Missing required settings: {', '.join(missing)}")
            return 2

    engine = create_db_engine(settings.database)
    try:
        run_migrations(engine)
        if args.command == "load-submissions":
            count = orchestrator.load_all(engine, build_sources(settings))
            logger.info(f"Catalog now holds {count} submissions")
        elif args.command == "query-tags":
            for sub in orchestrator.query(engine, args.search):
                print(format_submission(sub))
        else:
            sources = {} if args.dry_run else build_sources(settings)
            orchestrator.apply_tags(
                engine, sources, args.search, args.tags, dry_run=args.dry_run
            )
    except TagSyncError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        dispose_engine(engine)
    return 0
