from importlib.metadata import PackageNotFoundError, version as _version


def get_version() -> str:
    # fallback for source checkouts that were never installed
    try:
        return _version("tagsync")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()
