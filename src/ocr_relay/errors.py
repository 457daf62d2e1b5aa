from __future__ import annotations


class OcrError(Exception):
    """Base class for every error raised by ocr_relay."""


class ConnectionError(OcrError):
    """The OCR server (or release host) was unreachable or timed out."""


class ServerError(OcrError):
    """The OCR server answered, but with a failure status or unusable body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(OcrError, ValueError):
    """Invalid engine or variant name. Raised before any I/O."""


class UnsupportedPlatformError(OcrError):
    pass


class ArtifactError(OcrError):
    """A release download failed or its archive lacked the expected binary."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TooManyRedirectsError(ArtifactError):
    pass
