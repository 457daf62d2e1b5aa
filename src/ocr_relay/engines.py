from __future__ import annotations

from enum import Enum

from .errors import ValidationError


class Engine(str, Enum):
    OCRS = "ocrs"
    LEPTESS = "leptess"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    Engine.OCRS: "Pure-Rust OCR engine; fast, no system dependencies",
    Engine.LEPTESS: "Tesseract via leptess; more robust on noisy scans",
}

DEFAULT_ENGINE = Engine.OCRS

OCR_PATH = "/ocr"


def parse_engine(value: Engine | str) -> Engine:
    """Map an engine name (or member) onto :class:`Engine`.

    Strings are matched case-insensitively after stripping whitespace.
    Anything else raises :class:`ValidationError`.
    """

    if isinstance(value, Engine):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        for engine in Engine:
            if engine.value == key:
                return engine
    valid = ", ".join(e.value for e in Engine)
    raise ValidationError(f"Invalid engine: {value!r}. Valid engines: {valid}")


def endpoint_for(engine: Engine | str) -> str:
    engine = parse_engine(engine)
    if engine is DEFAULT_ENGINE:
        return OCR_PATH
    return f"{OCR_PATH}/{engine.value}"
