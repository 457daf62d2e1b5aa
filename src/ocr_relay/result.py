from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any


def utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class StepTiming:
    name: str
    time_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "time_ms": self.time_ms}


@dataclass(frozen=True)
class PreprocessingStats:
    preset: str
    total_time_ms: int
    steps: tuple[StepTiming, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PreprocessingStats:
        steps = tuple(
            StepTiming(name=str(s.get("name") or ""), time_ms=_as_int(s.get("time_ms")))
            for s in (data.get("steps") or [])
            if isinstance(s, dict)
        )
        return cls(
            preset=str(data.get("preset") or ""),
            total_time_ms=_as_int(data.get("total_time_ms")),
            steps=steps,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "preset": self.preset,
            "total_time_ms": self.total_time_ms,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass(frozen=True)
class Result:
    """Outcome of one recognition request.

    Always built from exactly one server response and never mutated
    afterwards. ``engine`` is ``""`` when the server did not say which
    engine produced the text.
    """

    text: str
    confidence: float
    processing_time_ms: int
    warnings: tuple[str, ...] = ()
    engine: str = ""
    preprocessing: PreprocessingStats | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> Result:
        try:
            confidence = float(data.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        if not math.isfinite(confidence):
            confidence = 0.0
        confidence = min(max(confidence, 0.0), 1.0)

        raw_pre = data.get("preprocessing")
        preprocessing = (
            PreprocessingStats.from_dict(raw_pre) if isinstance(raw_pre, dict) else None
        )

        return cls(
            text=str(data.get("text") or ""),
            confidence=confidence,
            processing_time_ms=_as_int(data.get("processing_time_ms")),
            warnings=tuple(str(w) for w in (data.get("warnings") or [])),
            engine=str(data.get("engine") or ""),
            preprocessing=preprocessing,
        )

    @property
    def success(self) -> bool:
        return bool(self.text)

    @property
    def preprocessing_time_ms(self) -> int:
        if self.preprocessing is None:
            return 0
        return self.preprocessing.total_time_ms

    @property
    def preprocessing_preset(self) -> str | None:
        if self.preprocessing is None:
            return None
        return self.preprocessing.preset

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "processing_time_ms": self.processing_time_ms,
            "warnings": list(self.warnings),
            "engine": self.engine,
            "preprocessing": (
                self.preprocessing.to_dict() if self.preprocessing is not None else None
            ),
        }

    def to_metadata(self, *, processed_at: str | None = None) -> dict[str, Any]:
        """Blob-metadata shape used by attachment analyzers."""

        return {
            "ocr_text": self.text,
            "ocr_confidence": self.confidence,
            "ocr_engine": self.engine,
            "ocr_processed_at": processed_at or utc_iso(),
        }


@dataclass(frozen=True)
class EngineInfo:
    name: str
    description: str
    supported_formats: tuple[str, ...] = ()
    supported_languages: tuple[str, ...] = ()


@dataclass(frozen=True)
class ServerInfo:
    version: str
    default_engine: str
    available_engines: tuple[EngineInfo, ...]
    supported_formats: tuple[str, ...]
    max_file_size_bytes: int | None = None
    default_language: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerInfo:
        engines = tuple(
            EngineInfo(
                name=str(e.get("name") or ""),
                description=str(e.get("description") or ""),
                supported_formats=tuple(e.get("supported_formats") or ()),
                supported_languages=tuple(e.get("supported_languages") or ()),
            )
            for e in (data.get("available_engines") or [])
            if isinstance(e, dict)
        )

        formats = data.get("supported_formats")
        if formats is None:
            # Older servers only report formats per engine.
            merged: dict[str, None] = {}
            for eng in engines:
                merged.update(dict.fromkeys(eng.supported_formats))
            formats = list(merged)

        max_size = data.get("max_file_size_bytes")
        return cls(
            version=str(data.get("version") or ""),
            default_engine=str(data.get("default_engine") or ""),
            available_engines=engines,
            supported_formats=tuple(formats),
            max_file_size_bytes=_as_int(max_size) if max_size is not None else None,
            default_language=data.get("default_language"),
            raw=dict(data),
        )

    @property
    def engine_names(self) -> list[str]:
        return [e.name for e in self.available_engines]
