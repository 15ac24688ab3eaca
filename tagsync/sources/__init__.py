"""Submission sources, one per origin site."""

from typing import Dict

from tagsync.config import Settings
from tagsync.domain.models import SubmissionSite

from .base import SubmissionSource
from .furaffinity import FurAffinitySource
from .weasyl import WeasylSource


def build_sources(settings: Settings) -> Dict[SubmissionSite, SubmissionSource]:
    """Instantiate both sources from explicit settings.

    Parameters:
        settings (Settings): Invocation settings carrying per-site config.

    Returns:
        Dict[SubmissionSite, SubmissionSource]: Mapping in load order
        (Weasyl first, then FurAffinity).
    """
    return {
        SubmissionSite.WEASYL: WeasylSource(settings.weasyl),
        SubmissionSite.FURAFFINITY: FurAffinitySource(settings.furaffinity),
    }


__all__ = ["SubmissionSource", "WeasylSource", "FurAffinitySource", "build_sources"]
