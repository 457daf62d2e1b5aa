"""ocr-relay: client and installer for a standalone OCR server.

The OCR engine runs as a separate process. This package talks to it over a
small HTTP/JSON contract (:class:`Client`) and fetches the platform-specific
server executable from its release archives (:class:`Installer`).
"""

from __future__ import annotations

__version__ = "0.1.0"

from .client import Client
from .config import Configuration
from .engines import DEFAULT_ENGINE, Engine
from .errors import (
    ArtifactError,
    ConnectionError,
    OcrError,
    ServerError,
    TooManyRedirectsError,
    UnsupportedPlatformError,
    ValidationError,
)
from .installer import Installer, InstallState, Variant, install
from .result import PreprocessingStats, Result, ServerInfo

__all__ = [
    "__version__",
    "ArtifactError",
    "Client",
    "Configuration",
    "ConnectionError",
    "DEFAULT_ENGINE",
    "Engine",
    "InstallState",
    "Installer",
    "OcrError",
    "PreprocessingStats",
    "Result",
    "ServerError",
    "ServerInfo",
    "TooManyRedirectsError",
    "UnsupportedPlatformError",
    "ValidationError",
    "Variant",
    "install",
]
