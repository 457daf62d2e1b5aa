"""Shared fixtures: fake requests sessions/responses and in-memory archives."""
from __future__ import annotations

import io
import json
import tarfile
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
import requests


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        body: Any = b"",
        *,
        headers: dict[str, str] | None = None,
        url: str = "",
        reason: str = "",
    ) -> None:
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.status_code = status_code
        self.content = body
        self.headers = headers or {}
        self.url = url
        self.reason = reason
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_response() -> Callable[..., FakeResponse]:
    return FakeResponse


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def make_archive() -> Callable[..., bytes]:
    def _make(files: dict[str, bytes], dirs: tuple[str, ...] = ()) -> bytes:
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            for name in dirs:
                info = tarfile.TarInfo(name)
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            for name, data in files.items():
                info = tarfile.TarInfo(name)
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        return buf.getvalue()

    return _make
