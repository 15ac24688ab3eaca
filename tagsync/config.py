import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from dotenv import load_dotenv
from loguru import logger
from tagsync.utils.logger import config as configure_logger

# Load .env as early as possible so all downstream imports see the intended env
load_dotenv()

# Configure logger after env is loaded (LOG_LEVEL honored)
configure_logger()


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    try:
        return int(val.strip())
    except ValueError:
        logger.warning(f"Ignoring non-integer setting value: {val!r}")
        return default


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val.strip())
    except ValueError:
        logger.warning(f"Ignoring non-numeric setting value: {val!r}")
        return default


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip()


# --- Storage
SUBMISSIONS_DATABASE = Path(_env("SUBMISSIONS_DATABASE", "submissions.db")).expanduser()
logger.debug(f"SUBMISSIONS_DATABASE={SUBMISSIONS_DATABASE}")

# --- Networking
# Upper bound on parallel detail-page fetches within one source.
MAX_CONCURRENCY = _as_int(os.getenv("MAX_CONCURRENCY"), 4)
if MAX_CONCURRENCY < 1:
    MAX_CONCURRENCY = 1
logger.debug(f"MAX_CONCURRENCY={MAX_CONCURRENCY}")

# Per-request timeout in seconds.
HTTP_TIMEOUT = _as_float(os.getenv("HTTP_TIMEOUT"), 20.0)
if HTTP_TIMEOUT <= 0:
    HTTP_TIMEOUT = 20.0
logger.debug(f"HTTP_TIMEOUT={HTTP_TIMEOUT}")

# --- Weasyl
WEASYL_BASE_URL = _env("WEASYL_BASE_URL", "https://www.weasyl.com").rstrip("/")
WEASYL_PAGE_SIZE = max(1, _as_int(os.getenv("WEASYL_PAGE_SIZE"), 100))
WEASYL_API_KEY = _env("WEASYL_API_KEY")
WEASYL_USER = _env("WEASYL_USER")
logger.debug(f"WEASYL_BASE_URL={WEASYL_BASE_URL} WEASYL_PAGE_SIZE={WEASYL_PAGE_SIZE}")

# --- FurAffinity
FURAFFINITY_BASE_URL = _env(
    "FURAFFINITY_BASE_URL", "https://www.furaffinity.net"
).rstrip("/")
# Timezone the account renders submission dates in (IANA name).
FURAFFINITY_TIMEZONE = _env("FURAFFINITY_TIMEZONE", "UTC") or "UTC"
FURAFFINITY_COOKIE_A = _env("FURAFFINITY_COOKIE_A")
FURAFFINITY_COOKIE_B = _env("FURAFFINITY_COOKIE_B")
FURAFFINITY_USER = _env("FURAFFINITY_USER")
logger.debug(
    f"FURAFFINITY_BASE_URL={FURAFFINITY_BASE_URL} FURAFFINITY_TIMEZONE={FURAFFINITY_TIMEZONE}"
)


@dataclass(frozen=True)
class WeasylConfig:
    """Settings for the Weasyl API source.

    Attributes:
        api_key: Value sent in the X-Weasyl-API-Key header.
        user: Account whose gallery is loaded.
        base_url: Scheme and host of the Weasyl site.
        page_size: Number of gallery entries requested per list page.
        timeout: Per-request timeout in seconds.
        max_workers: Size of the detail-fetch thread pool.
    """

    api_key: str
    user: str
    base_url: str = WEASYL_BASE_URL
    page_size: int = WEASYL_PAGE_SIZE
    timeout: float = HTTP_TIMEOUT
    max_workers: int = MAX_CONCURRENCY


@dataclass(frozen=True)
class FurAffinityConfig:
    """Settings for the FurAffinity gallery source.

    Attributes:
        cookie_a: Session cookie 'a' of a logged-in browser.
        cookie_b: Session cookie 'b' of a logged-in browser.
        user: Account whose gallery is walked.
        base_url: Scheme and host of the FurAffinity site.
        timezone: IANA timezone the site renders dates in for this account.
        timeout: Per-request timeout in seconds.
        max_workers: Size of the detail-fetch thread pool.
    """

    cookie_a: str
    cookie_b: str
    user: str
    base_url: str = FURAFFINITY_BASE_URL
    timezone: str = FURAFFINITY_TIMEZONE
    timeout: float = HTTP_TIMEOUT
    max_workers: int = MAX_CONCURRENCY


@dataclass(frozen=True)
class Settings:
    """Everything one invocation needs, assembled once and passed down."""

    database: Path
    weasyl: WeasylConfig
    furaffinity: FurAffinityConfig

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        """
        Build settings from the environment, letting non-empty overrides win.

        Parameters:
            **overrides: Optional values keyed like the CLI options
                (submissions_database, weasyl_api_key, weasyl_user,
                furaffinity_cookie_a, furaffinity_cookie_b, furaffinity_user).

        Returns:
            Settings: The merged configuration.
        """

        def pick(key: str, fallback: Any) -> Any:
            value = overrides.get(key)
            return fallback if value in (None, "") else value

        database = Path(pick("submissions_database", SUBMISSIONS_DATABASE)).expanduser()
        weasyl = WeasylConfig(
            api_key=pick("weasyl_api_key", WEASYL_API_KEY),
            user=pick("weasyl_user", WEASYL_USER),
        )
        furaffinity = FurAffinityConfig(
            cookie_a=pick("furaffinity_cookie_a", FURAFFINITY_COOKIE_A),
            cookie_b=pick("furaffinity_cookie_b", FURAFFINITY_COOKIE_B),
            user=pick("furaffinity_user", FURAFFINITY_USER),
            timezone=FURAFFINITY_TIMEZONE,
        )
        return cls(database=database, weasyl=weasyl, furaffinity=furaffinity)

    def missing_credentials(self) -> list[str]:
        """Return the names of credential settings that are still empty."""
        checks = {
            "weasyl_api_key": self.weasyl.api_key,
            "weasyl_user": self.weasyl.user,
            "furaffinity_cookie_a": self.furaffinity.cookie_a,
            "furaffinity_cookie_b": self.furaffinity.cookie_b,
            "furaffinity_user": self.furaffinity.user,
        }
        return [name for name, value in checks.items() if not value]
