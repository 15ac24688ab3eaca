"""Sync a local catalog of Weasyl and FurAffinity submissions and bulk-edit their tags."""

from tagsync._version import __version__

__all__ = ["__version__"]
