from __future__ import annotations

import io
import logging
import mimetypes
import os
import threading
from dataclasses import replace
from pathlib import Path
from typing import IO, Any, Union

import requests
from requests import exceptions as req_exc

from .config import Configuration
from .engines import Engine, endpoint_for, parse_engine
from .errors import ConnectionError, OcrError, ServerError
from .http_client import decode_json
from .result import Result, ServerInfo

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"
INFO_PATH = "/info"
HEALTHY_STATUS = "ok"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

Source = Union[str, os.PathLike, bytes, IO[bytes]]


def guess_content_type(name: str | os.PathLike[str]) -> str:
    content_type, _ = mimetypes.guess_type(os.fspath(name))
    return content_type or DEFAULT_CONTENT_TYPE


def _error_message(resp: requests.Response) -> str:
    body = decode_json(resp.content)
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"OCR server returned {resp.status_code}"


class Client:
    """HTTP client for a running OCR server.

    Each public call issues exactly one HTTP round trip (``compare`` issues
    one per engine) and blocks until the response or a timeout.

    The session is either injected or created on first use; creation is
    guarded by a lock so a shared client can be used from several threads.
    """

    def __init__(
        self,
        config: Configuration | None = None,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config if config is not None else Configuration()
        self._session = session
        self._owns_session = session is None
        self._session_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            with self._session_lock:
                if self._session is None:
                    self._session = requests.Session()
        return self._session

    def close(self) -> None:
        with self._session_lock:
            if self._session is not None and self._owns_session:
                self._session.close()
                self._session = None

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def extract(
        self,
        stream: IO[bytes] | bytes,
        content_type: str,
        filename: str,
        engine: Engine | str | None = None,
    ) -> Result:
        # An explicit engine wins over the configured default.
        resolved = parse_engine(engine) if engine is not None else self.config.engine
        url = self.config.url_for(endpoint_for(resolved))
        logger.debug("POST %s (%s, %s)", url, filename, content_type)

        try:
            resp = self.session.post(
                url,
                files={"file": (filename, stream, content_type)},
                timeout=self.config.request_timeout,
            )
        except req_exc.RequestException as e:
            raise ConnectionError(f"Failed to connect to OCR server: {e}") from e

        result = Result.from_response(self._decode(resp))
        logger.info(
            "OCR completed: engine=%s confidence=%.2f time_ms=%s chars=%s",
            result.engine or resolved.value,
            result.confidence,
            result.processing_time_ms,
            len(result.text),
        )
        return result

    def extract_from_path(
        self,
        path: str | os.PathLike[str],
        content_type: str | None = None,
        filename: str | None = None,
        engine: Engine | str | None = None,
    ) -> Result:
        path = Path(path)
        content_type = content_type or guess_content_type(path)
        filename = filename or path.name
        with path.open("rb") as f:
            return self.extract(f, content_type, filename, engine=engine)

    def compare(
        self,
        source: Source,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> dict[str, Result]:
        """Run the same input through every engine.

        Returns ``{engine_name: Result}``. The first failing engine raises;
        results gathered before it are discarded.
        """

        if isinstance(source, (str, os.PathLike)):
            path = Path(source)
            data = path.read_bytes()
            filename = filename or path.name
        elif isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        else:
            data = source.read()
            name = getattr(source, "name", None)
            if not filename and isinstance(name, str) and name:
                filename = Path(name).name

        filename = filename or "upload"
        content_type = content_type or guess_content_type(filename)

        results: dict[str, Result] = {}
        for engine in Engine:
            result = self.extract(
                io.BytesIO(data), content_type, filename, engine=engine
            )
            if not result.engine:
                result = replace(result, engine=engine.value)
            results[engine.value] = result
        return results

    def healthy(self) -> bool:
        try:
            resp = self.session.get(
                self.config.url_for(HEALTH_PATH),
                timeout=self.config.request_timeout,
            )
            if not 200 <= resp.status_code < 300:
                return False
            body = decode_json(resp.content)
            return isinstance(body, dict) and body.get("status") == HEALTHY_STATUS
        except Exception as e:
            logger.debug("OCR health check failed: %s", e)
            return False

    def server_info(self) -> ServerInfo:
        try:
            resp = self.session.get(
                self.config.url_for(INFO_PATH),
                timeout=self.config.request_timeout,
            )
        except req_exc.RequestException as e:
            raise ConnectionError(f"Failed to connect to OCR server: {e}") from e
        return ServerInfo.from_dict(self._decode(resp))

    def analyze(
        self,
        stream: IO[bytes] | bytes,
        content_type: str,
        filename: str,
    ) -> dict[str, Any]:
        """Return blob metadata for an attachment, or ``{}``.

        Unsupported content types are skipped without a request. OCR errors
        are logged and yield ``{}`` so an upload never fails because of OCR.
        """

        if not self.config.accept_content_type(content_type):
            return {}
        try:
            result = self.extract(stream, content_type, filename)
        except OcrError as e:
            logger.error("OCR failed for %s: %s", filename, e)
            return {}
        if not result.success:
            return {}
        return result.to_metadata()

    @staticmethod
    def _decode(resp: requests.Response) -> dict[str, Any]:
        if not 200 <= resp.status_code < 300:
            raise ServerError(_error_message(resp), status_code=resp.status_code)
        body = decode_json(resp.content)
        if not isinstance(body, dict):
            raise ServerError(
                "OCR server returned an invalid response body",
                status_code=resp.status_code,
            )
        return body
