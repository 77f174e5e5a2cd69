from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import unquote, urlparse

import requests
from requests.adapters import HTTPAdapter

from sheet_import import __version__

"""Workbook and config sources served over http(s).

A URL is only fetched when its host is on the allow-list: the exact domain or
any subdomain of it. An empty allow-list refuses every URL. Redirects are
followed, and every hop has to pass the same check before the body is read.

Environment (the CLI options win when both are given):

- ``SHEET_IMPORT_ALLOWED_DOMAINS``: comma separated domains
- ``SHEET_IMPORT_HTTP_CONNECT_TIMEOUT`` / ``SHEET_IMPORT_HTTP_READ_TIMEOUT``: seconds
- ``SHEET_IMPORT_USER_AGENT``: replaces the default ``sheet-import/<version>``
"""

__all__ = [
    "RemoteSourceError",
    "UrlFetcher",
    "DEFAULT_USER_AGENT",
    "is_url",
    "parse_domains",
    "source_name",
    "url_filename",
]

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"sheet-import/{__version__}"
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 30.0
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
CHUNK_SIZE = 64 * 1024

_SCHEMES = ("http", "https")


class RemoteSourceError(Exception):
    """Raised when a URL is refused or cannot be downloaded."""


def is_url(source: Any) -> bool:
    return isinstance(source, str) and urlparse(source).scheme.lower() in _SCHEMES


def url_filename(url: str) -> str:
    """Last path segment of ``url`` (percent-decoded), or its host when the path is empty."""
    parsed = urlparse(url)
    return PurePosixPath(unquote(parsed.path)).name or parsed.hostname or url


def source_name(source: Path | str) -> str:
    """File name of a local path or URL, as matched against ``filename`` in the config."""
    if is_url(source):
        return url_filename(str(source))
    return Path(source).name


def parse_domains(values: Iterable[str] | str | None) -> tuple[str, ...]:
    """Normalize domains: lower-cased, ``*.`` and dots stripped, duplicates and blanks dropped."""
    if values is None:
        return ()
    if isinstance(values, str):
        values = values.split(",")
    out: list[str] = []
    for v in values:
        d = v.strip().lower()
        if d.startswith("*."):
            d = d[2:]
        d = d.strip(".")
        if d and d not in out:
            out.append(d)
    return tuple(out)


def _env_seconds(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise RemoteSourceError(f"{name} must be a number of seconds, got {raw!r}") from e


@dataclass(frozen=True)
class UrlFetcher:
    allowed_domains: tuple[str, ...] = ()
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    max_bytes: int = DEFAULT_MAX_BYTES
    # injected in tests; a fresh session per fetch otherwise
    session: requests.Session | None = None

    def __post_init__(self) -> None:
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise RemoteSourceError(
                f"timeouts must be positive (connect={self.connect_timeout}, read={self.read_timeout})"
            )
        object.__setattr__(self, "allowed_domains", parse_domains(self.allowed_domains))

    @classmethod
    def from_env(
        cls,
        allowed_domains: Iterable[str] = (),
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
    ) -> UrlFetcher:
        domains = parse_domains([*parse_domains(os.getenv("SHEET_IMPORT_ALLOWED_DOMAINS")), *allowed_domains])
        return cls(
            allowed_domains=domains,
            connect_timeout=connect_timeout
            if connect_timeout is not None
            else _env_seconds("SHEET_IMPORT_HTTP_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
            read_timeout=read_timeout
            if read_timeout is not None
            else _env_seconds("SHEET_IMPORT_HTTP_READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
            user_agent=os.getenv("SHEET_IMPORT_USER_AGENT") or DEFAULT_USER_AGENT,
        )

    def is_allowed(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return False
        return any(host == d or host.endswith("." + d) for d in self.allowed_domains)

    def check_allowed(self, url: str) -> None:
        if not is_url(url):
            raise RemoteSourceError(f"not an http(s) url: {url}")
        if not self.is_allowed(url):
            host = urlparse(url).hostname or ""
            allowed = ", ".join(self.allowed_domains) or "none configured"
            raise RemoteSourceError(f"host not allowed: {host} (allowed domains: {allowed})")

    @contextmanager
    def _session(self) -> Iterator[requests.Session]:
        if self.session is not None:
            yield self.session
            return
        with requests.Session() as session:
            session.trust_env = False
            adapter = HTTPAdapter(max_retries=0)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            yield session

    def fetch(self, url: str) -> bytes:
        """Download ``url`` and return its body.

        Raises:
            RemoteSourceError: host not allowed, timeout, HTTP error status,
                or a body larger than ``max_bytes``
        """
        self.check_allowed(url)
        logger.info("fetching %s", url)
        with self._session() as session:
            try:
                response = session.get(
                    url,
                    headers={"User-Agent": self.user_agent},
                    timeout=(self.connect_timeout, self.read_timeout),
                    stream=True,
                )
            except requests.Timeout as e:
                raise RemoteSourceError(f"timed out fetching {url}: {e}") from e
            except requests.RequestException as e:
                raise RemoteSourceError(f"cannot fetch {url}: {e}") from e
            try:
                return self._read_body(url, response)
            finally:
                response.close()

    def _read_body(self, url: str, response: requests.Response) -> bytes:
        for hop in (*response.history, response):
            self.check_allowed(hop.url)
        try:
            response.raise_for_status()
            declared = response.headers.get("Content-Length", "")
            if declared.isdigit() and int(declared) > self.max_bytes:
                raise RemoteSourceError(f"{url} is larger than {self.max_bytes} bytes")
            body = bytearray()
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                body.extend(chunk)
                if len(body) > self.max_bytes:
                    raise RemoteSourceError(f"{url} is larger than {self.max_bytes} bytes")
        except requests.Timeout as e:
            raise RemoteSourceError(f"timed out fetching {url}: {e}") from e
        except requests.RequestException as e:
            raise RemoteSourceError(f"cannot fetch {url}: {e}") from e
        logger.debug("fetched %s bytes=%d", url, len(body))
        return bytes(body)
