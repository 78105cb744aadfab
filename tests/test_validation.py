from __future__ import annotations

import allure
import pytest

from napkin_visuals.models import (
    ColorMode,
    GenerationRequest,
    OutputFormat,
    VisualStatus,
)
from napkin_visuals.validation import (
    parse_status,
    parse_submission,
    request_from_mapping,
    validate_request,
)

pytestmark = [
    allure.epic("Visual Generation"),
    allure.feature("Boundary Validation"),
]


def _fields(result) -> set[str]:
    return {error.field for error in result.errors}


def test_minimal_arguments_default_to_svg() -> None:
    result = request_from_mapping({"content": "Quarterly revenue grew 12%"})

    assert result.ok
    assert result.value.format is OutputFormat.SVG
    assert result.value.to_payload() == {"format": "svg", "content": "Quarterly revenue grew 12%"}


def test_arguments_override_defaults_and_none_is_ignored() -> None:
    result = request_from_mapping(
        {"content": "Roadmap", "format": "png", "language": None},
        {"format": "svg", "language": "en-US", "style_id": "corporate"},
    )

    assert result.ok
    request = result.value
    assert request.format is OutputFormat.PNG
    assert request.language == "en-US"
    assert request.style_id == "corporate"


@pytest.mark.parametrize("count", [0, 5])
def test_number_of_visuals_out_of_range_is_rejected(count: int) -> None:
    result = request_from_mapping({"content": "x", "number_of_visuals": count})

    assert not result.ok
    assert "number_of_visuals" in _fields(result)


def test_dimension_bounds_are_enforced() -> None:
    result = request_from_mapping({"content": "x", "format": "png", "width": 99, "height": 10_001})

    assert _fields(result) == {"width", "height"}


def test_dimension_bounds_are_inclusive() -> None:
    result = request_from_mapping({"content": "x", "format": "png", "width": 100, "height": 10_000})

    assert result.ok


def test_selectors_are_mutually_exclusive() -> None:
    result = request_from_mapping(
        {"content": "x", "visual_id": "abc", "visual_query": "mindmap"},
    )

    assert not result.ok
    assert "cannot be combined" in result.describe()


def test_single_selector_requires_single_visual() -> None:
    result = request_from_mapping(
        {"content": "x", "visual_query": "timeline", "number_of_visuals": 2},
    )

    assert not result.ok
    assert "visual_query" in _fields(result)


def test_list_selector_length_must_match_count() -> None:
    mismatch = request_from_mapping(
        {"content": "x", "visual_queries": ["a", "b"], "number_of_visuals": 3},
    )
    matching = request_from_mapping(
        {"content": "x", "visual_queries": ["a", "b"], "number_of_visuals": 2},
    )

    assert "visual_queries" in _fields(mismatch)
    assert matching.ok
    assert matching.value.to_payload()["visual_queries"] == ["a", "b"]


def test_list_selector_without_count_implies_one_visual() -> None:
    result = request_from_mapping({"content": "x", "visual_ids": ["a", "b"]})

    assert "visual_ids" in _fields(result)


def test_type_errors_are_reported_per_field() -> None:
    result = request_from_mapping(
        {
            "content": "",
            "format": "gif",
            "width": "wide",
            "number_of_visuals": True,
            "transparent_background": "yes",
            "bogus": 1,
        },
    )

    assert _fields(result) == {
        "content",
        "format",
        "width",
        "number_of_visuals",
        "transparent_background",
        "bogus",
    }


def test_validate_request_rejects_blank_content() -> None:
    result = validate_request(GenerationRequest(format=OutputFormat.SVG, content="   "))

    assert _fields(result) == {"content"}


def test_parse_submission_accepts_warning() -> None:
    result = parse_submission({"id": "req-9", "status": "pending", "warning": "slow queue"})

    assert result.ok
    assert result.value.id == "req-9"
    assert result.value.status is VisualStatus.PENDING
    assert result.value.warning == "slow queue"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"status": "pending"},
        {"id": "req", "status": "queued"},
        {"id": 7, "status": "pending"},
    ],
)
def test_parse_submission_rejects_bad_shapes(payload: object) -> None:
    assert not parse_submission(payload).ok


def test_parse_status_builds_generated_files() -> None:
    result = parse_status(
        {
            "id": "req-1",
            "status": "completed",
            "generated_files": [
                {
                    "url": "https://cdn.test/files/abc",
                    "visual_id": "v1",
                    "color_mode": "dark",
                    "width": 800,
                    "height": 600.5,
                },
            ],
            "request": {"format": "png"},
        },
    )

    assert result.ok
    status = result.value
    assert status.is_terminal
    generated = status.generated_files[0]
    assert generated.file_id == "abc"
    assert generated.color_mode is ColorMode.DARK
    assert status.find_file("abc") is generated
    assert status.find_file("https://cdn.test/files/abc") is generated
    assert status.find_file("missing") is None


@pytest.mark.parametrize(
    "generated",
    [
        {"url": "/relative/path", "visual_id": "v1"},
        {"url": "https://cdn.test/a", "visual_id": "v1", "color_mode": "both"},
        {"url": "https://cdn.test/a"},
        {"url": "https://cdn.test/a", "visual_id": "v1", "width": "big"},
    ],
)
def test_parse_status_rejects_bad_generated_files(generated: dict) -> None:
    result = parse_status({"id": "req-1", "status": "completed", "generated_files": [generated]})

    assert not result.ok
    assert all(error.field.startswith("generated_files[0]") for error in result.errors)
