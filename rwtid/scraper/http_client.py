from __future__ import annotations

import time
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter

from . import config
from .error_codes import ErrorCode, FetchError
from .logging_utils import _scraper_event


@dataclass(frozen=True)
class ClientPolicy:
    """Lifetime and timeout settings for the HTTP client of one window.

    ``per_window`` asks the orchestrator to build a new session for every
    query window instead of sharing one for the whole run.
    """

    idle_timeout: float = config.IDLE_TIMEOUT_SECONDS
    request_timeout: float = config.REQUEST_TIMEOUT_SECONDS
    per_window: bool = config.CLIENT_PER_WINDOW
    headers: Mapping[str, str] = field(default_factory=lambda: dict(config.COMMON_HEADERS))

    @classmethod
    def from_config(cls) -> "ClientPolicy":
        return cls(
            idle_timeout=config.IDLE_TIMEOUT_SECONDS,
            request_timeout=config.REQUEST_TIMEOUT_SECONDS,
            per_window=config.CLIENT_PER_WINDOW,
            headers=dict(config.COMMON_HEADERS),
        )


class IdleTimeoutAdapter(HTTPAdapter):
    """HTTP adapter that discards pooled connections left idle too long."""

    def __init__(
        self,
        idle_timeout: float,
        *args: Any,
        clock: Callable[[], float] = time.monotonic,
        **kwargs: Any,
    ) -> None:
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._last_used: Optional[float] = None
        super().__init__(*args, **kwargs)

    def send(self, request, *args, **kwargs):  # noqa: ANN001
        now = self._clock()
        if self._last_used is not None and now - self._last_used > self.idle_timeout:
            self.poolmanager.clear()
        try:
            return super().send(request, *args, **kwargs)
        finally:
            self._last_used = self._clock()


def build_http_session(policy: Optional[ClientPolicy] = None) -> requests.Session:
    """Return a requests session configured according to ``policy``."""

    policy = policy or ClientPolicy.from_config()
    session = requests.Session()
    session.headers.update(dict(policy.headers))
    adapter = IdleTimeoutAdapter(policy.idle_timeout)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _redact_url(url: str) -> str:
    try:
        parsed = urllib.parse.urlparse(url)
        return urllib.parse.urlunparse(parsed._replace(query=""))
    except Exception:
        return url


def _classify_http_status(status: Optional[int]) -> str:
    if status is None:
        return ErrorCode.INTERNAL
    if status == 404:
        return ErrorCode.HTTP_404
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


def fetch_page(
    session: requests.Session,
    url: str,
    *,
    method: str = "GET",
    data: Optional[Mapping[str, Any]] = None,
    referer: Optional[str] = None,
    policy: Optional[ClientPolicy] = None,
) -> requests.Response:
    """Issue one request and return the response, or raise :class:`FetchError`.

    Failures are not retried.
    """

    policy = policy or ClientPolicy.from_config()
    method = method.upper()
    headers = {"Referer": referer} if referer else None
    kwargs: dict[str, Any] = {"headers": headers, "timeout": policy.request_timeout}
    if method == "GET":
        kwargs["params"] = data
    else:
        kwargs["data"] = data

    status: Optional[int] = None
    try:
        response = session.request(method, url, **kwargs)
        status = response.status_code
        response.raise_for_status()
    except requests.HTTPError as exc:
        status = getattr(exc.response, "status_code", status)
        raise _fetch_failed(url, method, _classify_http_status(status), exc, status) from exc
    except (requests.Timeout, requests.ConnectionError) as exc:
        raise _fetch_failed(url, method, ErrorCode.NETWORK, exc, status) from exc
    except requests.RequestException as exc:
        raise _fetch_failed(url, method, ErrorCode.INTERNAL, exc, status) from exc

    _scraper_event(
        "fetch",
        method=method,
        url=_redact_url(url),
        http_status=status,
        bytes=len(response.content or b""),
    )
    return response


def _fetch_failed(
    url: str,
    method: str,
    error_code: str,
    exc: BaseException,
    status: Optional[int],
) -> FetchError:
    _scraper_event(
        "error",
        phase="fetch",
        method=method,
        url=_redact_url(url),
        error_code=error_code,
        http_status=status,
        error=str(exc)[:200],
    )
    return FetchError(
        f"{method} {_redact_url(url)} failed: {exc}",
        error_code=error_code,
        url=url,
        http_status=status,
    )


__all__ = [
    "ClientPolicy",
    "IdleTimeoutAdapter",
    "build_http_session",
    "fetch_page",
]
