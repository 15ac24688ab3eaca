from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Sequence, TypeVar

from loguru import logger

from tagsync.domain.models import Submission, SubmissionSite

T = TypeVar("T")
R = TypeVar("R")


class SubmissionSource(ABC):
    """Uniform access to one origin site's catalog.

    Implementations own their HTTP session and configuration; nothing is
    shared between sources. `fetch_all` must be read-only on the origin and
    `apply_tags` replaces the whole tag set of one submission.

    Attributes:
        site: The origin site served by this source.
        max_workers: Upper bound on concurrent detail fetches.
    """

    site: SubmissionSite
    max_workers: int = 1

    @abstractmethod
    def fetch_all(self) -> List[Submission]:
        """Return the complete current catalog for the configured account.

        Raises:
            TransportError: Network failure or non-2xx response.
            AuthError: Credentials rejected.
            ParseError: A page no longer has the expected structure.
        """

    @abstractmethod
    def apply_tags(self, submission_id: int, tags: Sequence[str]) -> None:
        """Replace the tags of `submission_id` on the origin with exactly `tags`."""

    def fetch_details(self, items: Sequence[T], fetch_one: Callable[[T], R]) -> List[R]:
        """Run `fetch_one` over `items` in a bounded pool, keeping input order.

        The first failure (in input order) cancels outstanding work and is
        re-raised after logging which item it belongs to; no partial result is
        returned.

        Parameters:
            items: Per-submission inputs (ids or list summaries).
            fetch_one: Callable loading the full record for one item.

        Returns:
            Results aligned with `items`.
        """
        if not items:
            return []
        workers = max(1, min(self.max_workers, len(items)))
        results: List[R] = []
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=f"tagsync-{self.site.value.lower()}"
        ) as pool:
            futures: List[Future] = [pool.submit(fetch_one, item) for item in items]
            for item, fut in zip(items, futures):
                try:
                    results.append(fut.result())
                except Exception as e:
                    for pending in futures:
                        pending.cancel()
                    item_id = getattr(item, "id", item)
                    logger.error(
                        f"Loading {self.site} submission {item_id} failed, aborting load: {e}"
                    )
                    raise
        return results
