from __future__ import annotations

from typing import Any, Mapping, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from loguru import logger

from tagsync.errors import AuthError, TransportError

USER_AGENT = "tagsync/0.1 (+https://github.com/tagsync/tagsync)"


def build_session(
    *,
    headers: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
    pool_size: int = 10,
) -> requests.Session:
    """Create a session owned by a single source.

    Parameters:
        headers: Default headers sent with every request (e.g. an API key).
        cookies: Cookies attached to every request (e.g. a login session).
        pool_size: Connection pool size; should cover the detail worker count.

    Returns:
        A requests.Session with retrying adapters mounted.
    """
    s = requests.Session()
    s.headers.update({"User-Agent": USER_AGENT})
    if headers:
        s.headers.update(dict(headers))
    if cookies:
        s.cookies.update(dict(cookies))

    # Conservative retry policy for transient network hiccups. Only reads are
    # retried; a replayed form POST could apply an edit twice.
    retry = Retry(
        total=3,
        connect=3,
        read=3,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        respect_retry_after_header=True,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(
        max_retries=retry, pool_connections=pool_size, pool_maxsize=pool_size
    )
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


def raise_for_status(resp: requests.Response) -> requests.Response:
    """Map a non-2xx response onto the transport error taxonomy.

    Returns the response unchanged when the status is 2xx.

    Raises:
        AuthError: On 401 or 403.
        TransportError: On any other non-2xx status.
    """
    status = resp.status_code
    if 200 <= status < 300:
        return resp
    request = getattr(resp, "request", None)
    method = request.method if request is not None else "HTTP"
    msg = f"{method} {resp.url} returned {status}"
    if status in (401, 403):
        logger.error(f"Credentials rejected: {msg}")
        raise AuthError(msg, status_code=status)
    logger.error(msg)
    raise TransportError(msg, status_code=status)


def get(
    session: requests.Session, url: str, *, timeout: float | int = 20, **kwargs: Any
) -> requests.Response:
    logger.debug(f"GET {url}")
    try:
        resp = session.get(url, timeout=timeout, **kwargs)
    except requests.exceptions.RequestException as e:
        logger.error(f"GET {url} failed: {e}")
        raise TransportError(f"GET {url} failed: {e}") from e
    return raise_for_status(resp)


def post(
    session: requests.Session, url: str, *, timeout: float | int = 30, **kwargs: Any
) -> requests.Response:
    logger.debug(f"POST {url}")
    try:
        resp = session.post(url, timeout=timeout, **kwargs)
    except requests.exceptions.RequestException as e:
        logger.error(f"POST {url} failed: {e}")
        raise TransportError(f"POST {url} failed: {e}") from e
    return raise_for_status(resp)
