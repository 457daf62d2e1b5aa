from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .engines import DEFAULT_ENGINE, Engine, parse_engine

DEFAULT_SERVER_URL = "http://localhost:9292"

DEFAULT_CONTENT_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/gif",
        "image/bmp",
        "image/webp",
        "image/tiff",
        "application/pdf",
    }
)


def _mime_essence(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


@dataclass
class Configuration:
    """Connection settings for one :class:`~ocr_relay.client.Client`.

    Mutable: the owning application may adjust fields between calls.
    ``engine`` is validated on every assignment, so an unknown engine fails
    here rather than at request time.
    """

    server_url: str = DEFAULT_SERVER_URL
    timeout: float = 30
    open_timeout: float = 5
    engine: Engine = DEFAULT_ENGINE
    content_types: set[str] = field(default_factory=lambda: set(DEFAULT_CONTENT_TYPES))

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "engine":
            value = parse_engine(value)
        super().__setattr__(name, value)

    @property
    def request_timeout(self) -> tuple[float, float]:
        # requests expects (connect, read).
        return (self.open_timeout, self.timeout)

    def accept_content_type(self, content_type: str | None) -> bool:
        if not content_type:
            return False
        accepted = {_mime_essence(ct) for ct in self.content_types}
        return _mime_essence(content_type) in accepted

    def url_for(self, path: str) -> str:
        return self.server_url.rstrip("/") + "/" + path.lstrip("/")
