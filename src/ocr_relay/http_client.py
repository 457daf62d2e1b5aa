from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import requests
from requests import exceptions as req_exc
from tqdm import tqdm

from .errors import ConnectionError, TooManyRedirectsError

logger = logging.getLogger(__name__)

REDIRECT_HTTP_STATUSES = {301, 302, 303, 307, 308}

_CHUNK_SIZE = 64 * 1024


def _header(headers: dict[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    reason: str
    headers: dict[str, str]
    fetched_at: float
    body: bytes
    redirects: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def location(self) -> str | None:
        return _header(self.headers, "Location")

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_HTTP_STATUSES and bool(self.location)


class HttpClient:
    """GET with a bounded, manual redirect loop.

    Redirects are followed here rather than by requests so the budget is
    explicit. Non-redirect responses come back untouched whatever their
    status; deciding what a 404 means is the caller's job.
    """

    def __init__(
        self,
        session: requests.Session,
        *,
        timeout_s: float = 90,
        redirect_limit: int = 10,
        show_progress: bool = False,
    ) -> None:
        self._session = session
        self._timeout_s = timeout_s
        self._redirect_limit = redirect_limit
        self._show_progress = show_progress

    def get(self, url: str) -> FetchResult:
        current = url
        remaining = self._redirect_limit
        followed = 0

        while True:
            res = self._get_once(current, redirects=followed)
            if not res.is_redirect:
                return res
            if remaining <= 0:
                raise TooManyRedirectsError(
                    f"Too many redirects (limit {self._redirect_limit}) fetching {url}",
                    url=url,
                    status_code=res.status_code,
                )
            next_url = urljoin(current, res.location or "")
            logger.debug("redirect %s -> %s (%s)", current, next_url, res.status_code)
            current = next_url
            remaining -= 1
            followed += 1

    def _get_once(self, url: str, *, redirects: int) -> FetchResult:
        try:
            resp = self._session.get(
                url,
                timeout=self._timeout_s,
                allow_redirects=False,
                stream=self._show_progress,
            )
        except req_exc.RequestException as e:
            raise ConnectionError(f"Failed to fetch {url}: {e}") from e

        headers = {k: str(v) for k, v in resp.headers.items()}
        status = int(resp.status_code)
        try:
            if self._show_progress and 200 <= status < 300:
                body = self._read_with_progress(resp, headers, url)
            else:
                body = resp.content
        except req_exc.RequestException as e:
            raise ConnectionError(f"Failed to fetch {url}: {e}") from e
        finally:
            resp.close()

        return FetchResult(
            url=url,
            final_url=str(resp.url or url),
            status_code=status,
            reason=str(resp.reason or ""),
            headers=headers,
            fetched_at=time.time(),
            body=body,
            redirects=redirects,
        )

    def _read_with_progress(
        self, resp: requests.Response, headers: dict[str, str], url: str
    ) -> bytes:
        length = _header(headers, "Content-Length")
        total = int(length) if length and length.isdigit() else None
        name = url.rsplit("/", 1)[-1] or url
        chunks: list[bytes] = []
        with tqdm(total=total, desc=name, unit="B", unit_scale=True) as bar:
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                if chunk:
                    chunks.append(chunk)
                    bar.update(len(chunk))
        return b"".join(chunks)


def decode_json(body: bytes | str | None) -> Any | None:
    if not body:
        return None
    try:
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
