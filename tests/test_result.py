from __future__ import annotations

import json
import re

import pytest

from ocr_relay.result import PreprocessingStats, Result, ServerInfo, StepTiming


def test_from_response_defaults_missing_fields() -> None:
    result = Result.from_response(
        {"text": "Hello World", "confidence": 0.95, "processing_time_ms": 150}
    )
    assert result.text == "Hello World"
    assert result.warnings == ()
    assert result.engine == ""
    assert result.preprocessing is None


def test_from_response_decodes_preprocessing() -> None:
    result = Result.from_response(
        {
            "text": "x",
            "confidence": 0.5,
            "processing_time_ms": 10,
            "warnings": ["Low quality"],
            "engine": "leptess",
            "preprocessing": {
                "preset": "aggressive",
                "total_time_ms": 200,
                "steps": [{"name": "grayscale", "time_ms": 3}, {"name": "deskew", "time_ms": 12}],
            },
        }
    )
    assert result.engine == "leptess"
    assert result.warnings == ("Low quality",)
    assert result.preprocessing_preset == "aggressive"
    assert result.preprocessing_time_ms == 200
    assert result.preprocessing.steps == (
        StepTiming("grayscale", 3),
        StepTiming("deskew", 12),
    )


@pytest.mark.parametrize("raw, expected", [(1.7, 1.0), (-0.2, 0.0), (None, 0.0)])
def test_confidence_is_clamped(raw, expected) -> None:
    result = Result.from_response({"text": "t", "confidence": raw})
    assert result.confidence == expected


def test_success_requires_text() -> None:
    assert Result("Hello", 0.9, 1).success
    assert not Result("", 0.0, 1).success
    assert not Result.from_response({"text": None}).success


def test_result_is_immutable() -> None:
    result = Result("Hello", 0.9, 1)
    with pytest.raises(AttributeError):
        result.text = "changed"  # type: ignore[misc]


def test_preprocessing_defaults_when_absent() -> None:
    result = Result("Test", 0.9, 50)
    assert result.preprocessing_time_ms == 0
    assert result.preprocessing_preset is None


def test_to_dict() -> None:
    result = Result(
        text="Test",
        confidence=0.9,
        processing_time_ms=50,
        warnings=("Low quality",),
        engine="ocrs",
        preprocessing=PreprocessingStats("default", 100),
    )
    assert result.to_dict() == {
        "text": "Test",
        "confidence": 0.9,
        "processing_time_ms": 50,
        "warnings": ["Low quality"],
        "engine": "ocrs",
        "preprocessing": {"preset": "default", "total_time_ms": 100, "steps": []},
    }


def test_to_metadata() -> None:
    result = Result("Extracted text", 0.85, 200, engine="ocrs")
    metadata = result.to_metadata()
    assert metadata["ocr_text"] == "Extracted text"
    assert metadata["ocr_confidence"] == pytest.approx(0.85, abs=0.01)
    assert metadata["ocr_engine"] == "ocrs"
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\dZ", metadata["ocr_processed_at"])
    assert result.to_metadata(processed_at="2024-01-01T00:00:00Z")["ocr_processed_at"] == (
        "2024-01-01T00:00:00Z"
    )


def test_server_info_from_dict() -> None:
    info = ServerInfo.from_dict(
        {
            "version": "0.1.0",
            "default_engine": "ocrs",
            "available_engines": [
                {"name": "ocrs", "description": "fast", "supported_formats": ["image/png"]},
                {
                    "name": "leptess",
                    "description": "tesseract",
                    "supported_formats": ["image/png", "image/tiff"],
                },
            ],
            "max_file_size_bytes": 10_485_760,
            "default_language": "eng",
        }
    )
    assert info.version == "0.1.0"
    assert info.default_engine == "ocrs"
    assert info.engine_names == ["ocrs", "leptess"]
    assert info.supported_formats == ("image/png", "image/tiff")
    assert info.max_file_size_bytes == 10_485_760
    assert info.raw["default_language"] == "eng"


def test_server_info_prefers_top_level_formats() -> None:
    info = ServerInfo.from_dict({"supported_formats": ["application/pdf"]})
    assert info.supported_formats == ("application/pdf",)
    assert info.available_engines == ()
    assert info.max_file_size_bytes is None


@pytest.mark.parametrize(
    "body",
    [b'{"text": "x", "confidence": NaN}', b'{"text": "x", "confidence": -Infinity}'],
)
def test_non_finite_confidence_becomes_zero(body) -> None:
    result = Result.from_response(json.loads(body))
    assert result.confidence == 0.0
