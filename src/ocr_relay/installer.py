"""Download and stage the OCR server executable.

Release archives live at::

    <RELEASE_BASE_URL>/v<version>/<BINARY_NAME><variant-suffix>-<os>-<arch>.tar.gz

and contain a single entry named exactly ``BINARY_NAME``.
"""

from __future__ import annotations

import functools
import io
import logging
import os
import platform
import tarfile
import tempfile
from enum import Enum
from pathlib import Path
from typing import IO, Iterator

import requests

from . import __version__
from .errors import (
    ArtifactError,
    UnsupportedPlatformError,
    ValidationError,
)
from .http_client import HttpClient

logger = logging.getLogger(__name__)

BINARY_NAME = "ocr-relay-server"
RELEASE_BASE_URL = "https://github.com/ocr-relay/ocr-relay-server/releases/download"
DEFAULT_REDIRECT_LIMIT = 10
EXECUTABLE_MODE = 0o755
BUILD_FROM_SOURCE_HINT = (
    "You may need to build from source: cd rust && cargo build --release"
)


class Variant(str, Enum):
    DEFAULT = "default"
    LEPTESS = "leptess"
    ALL = "all"

    @property
    def suffix(self) -> str:
        return _VARIANT_SUFFIXES[self]

    @property
    def description(self) -> str:
        return _VARIANT_DESCRIPTIONS[self]


_VARIANT_SUFFIXES = {
    Variant.DEFAULT: "",
    Variant.LEPTESS: "-leptess",
    Variant.ALL: "-all",
}

_VARIANT_DESCRIPTIONS = {
    Variant.DEFAULT: "ocrs engine only; no system dependencies",
    Variant.LEPTESS: "Tesseract engine via leptess",
    Variant.ALL: "every engine (ocrs and leptess)",
}


class InstallState(str, Enum):
    NOT_INSTALLED = "not_installed"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    INSTALLED = "installed"
    FAILED = "failed"


def parse_variant(value: Variant | str) -> Variant:
    if isinstance(value, Variant):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        for variant in Variant:
            if variant.value == key:
                return variant
    valid = ", ".join(v.value for v in Variant)
    raise ValidationError(f"Invalid variant: {value!r}. Valid variants: {valid}")


def detect_platform(system: str | None = None, machine: str | None = None) -> str:
    """Return ``<os>-<arch>`` for the host (or the given strings).

    Only darwin/linux on x86_64/aarch64 are published.
    """

    system = platform.system() if system is None else system
    machine = platform.machine() if machine is None else machine

    sys_l = system.lower()
    if "darwin" in sys_l:
        os_name = "darwin"
    elif "linux" in sys_l:
        os_name = "linux"
    else:
        raise UnsupportedPlatformError(f"Unsupported OS: {system}")

    mach_l = machine.lower()
    if "x86_64" in mach_l or "amd64" in mach_l:
        arch = "x86_64"
    elif "arm64" in mach_l or "aarch64" in mach_l:
        arch = "aarch64"
    else:
        raise UnsupportedPlatformError(f"Unsupported architecture: {machine}")

    return f"{os_name}-{arch}"


@functools.lru_cache(maxsize=None)
def host_platform() -> str:
    return detect_platform()


def artifact_filename(variant: Variant | str, platform_id: str) -> str:
    variant = parse_variant(variant)
    return f"{BINARY_NAME}{variant.suffix}-{platform_id}.tar.gz"


def build_download_url(
    version: str,
    variant: Variant | str = Variant.DEFAULT,
    platform_id: str | None = None,
    *,
    base_url: str = RELEASE_BASE_URL,
) -> str:
    variant = parse_variant(variant)
    if platform_id is None:
        platform_id = host_platform()
    tag = version if version.startswith("v") else f"v{version}"
    filename = artifact_filename(variant, platform_id)
    return f"{base_url.rstrip('/')}/{tag}/{filename}"


def _iter_regular_files(tar: tarfile.TarFile) -> Iterator[tuple[str, IO[bytes]]]:
    for member in tar:
        if not member.isfile():
            continue
        fh = tar.extractfile(member)
        if fh is not None:
            yield member.name, fh


def _read_named_entry(archive_bytes: bytes, entry_name: str) -> bytes | None:
    try:
        with tarfile.open(fileobj=io.BytesIO(archive_bytes), mode="r|gz") as tar:
            match = next(
                (fh for name, fh in _iter_regular_files(tar) if name == entry_name),
                None,
            )
            return match.read() if match is not None else None
    except (tarfile.TarError, OSError, EOFError) as e:
        raise ArtifactError(f"Failed to read release archive: {e}") from e


def _write_executable(data: bytes, destination: Path) -> None:
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".partial", dir=destination.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_path, EXECUTABLE_MODE)
        os.replace(tmp_path, destination)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def extract_named_entry(
    archive_bytes: bytes, entry_name: str, destination: str | os.PathLike[str]
) -> Path:
    """Write the first regular-file entry called ``entry_name`` to ``destination``.

    The entry is staged next to the destination and renamed into place, so
    an interrupted extraction never leaves a truncated executable behind.
    """

    destination = Path(destination)
    data = _read_named_entry(archive_bytes, entry_name)
    if data is None:
        raise ArtifactError(f"Binary {entry_name!r} not found in release archive")
    _write_executable(data, destination)
    return destination


class Installer:
    """Ensures the server executable exists in ``install_dir``.

    Not safe for concurrent installs into the same directory; callers that
    need that should serialize with a file lock.
    """

    def __init__(
        self,
        install_dir: str | os.PathLike[str],
        *,
        version: str = __version__,
        variant: Variant | str = Variant.DEFAULT,
        session: requests.Session | None = None,
        base_url: str = RELEASE_BASE_URL,
        redirect_limit: int = DEFAULT_REDIRECT_LIMIT,
        timeout_s: float = 90,
        show_progress: bool = False,
    ) -> None:
        self.install_dir = Path(install_dir)
        self.version = version
        self.variant = parse_variant(variant)
        self.base_url = base_url
        self.state = InstallState.NOT_INSTALLED
        self._session = session
        self._redirect_limit = redirect_limit
        self._timeout_s = timeout_s
        self._show_progress = show_progress

    @property
    def binary_path(self) -> Path:
        return self.install_dir / BINARY_NAME

    @property
    def installed(self) -> bool:
        path = self.binary_path
        return path.is_file() and os.access(path, os.X_OK)

    @property
    def platform(self) -> str:
        return host_platform()

    @property
    def download_url(self) -> str:
        return build_download_url(
            self.version, self.variant, self.platform, base_url=self.base_url
        )

    def _transition(self, state: InstallState) -> None:
        logger.debug("installer %s -> %s", self.state.value, state.value)
        self.state = state

    def install(self, *, force: bool = False) -> Path:
        if self.installed and not force:
            self._transition(InstallState.INSTALLED)
            return self.binary_path

        self._transition(InstallState.NOT_INSTALLED)
        url = self.download_url

        logger.info("Downloading %s for %s...", BINARY_NAME, self.platform)
        self._transition(InstallState.DOWNLOADING)
        session = self._session if self._session is not None else requests.Session()
        http = HttpClient(
            session,
            timeout_s=self._timeout_s,
            redirect_limit=self._redirect_limit,
            show_progress=self._show_progress,
        )
        try:
            self.install_dir.mkdir(parents=True, exist_ok=True)
            res = http.get(url)
            if not res.ok:
                status = f"{res.status_code} {res.reason}".rstrip()
                raise ArtifactError(
                    f"Failed to download binary: {status}\n"
                    f"URL: {url}\n{BUILD_FROM_SOURCE_HINT}",
                    url=url,
                    status_code=res.status_code,
                )

            self._transition(InstallState.EXTRACTING)
            extract_named_entry(res.body, BINARY_NAME, self.binary_path)
        except Exception:
            self._transition(InstallState.FAILED)
            raise
        finally:
            if self._session is None:
                session.close()

        self._transition(InstallState.INSTALLED)
        logger.info("Installed to %s", self.binary_path)
        return self.binary_path


def install(
    target_dir: str | os.PathLike[str],
    variant: Variant | str = Variant.DEFAULT,
    force: bool = False,
    *,
    version: str = __version__,
    session: requests.Session | None = None,
    show_progress: bool = False,
) -> Path:
    installer = Installer(
        target_dir,
        version=version,
        variant=variant,
        session=session,
        show_progress=show_progress,
    )
    return installer.install(force=force)
