from __future__ import annotations

import json
from pathlib import Path

import allure
import httpx
import pytest
from click.testing import CliRunner

from napkin_visuals import main
from napkin_visuals.config import Settings
from napkin_visuals.controllers import VisualCliController
from napkin_visuals.http.client import NapkinClient
from napkin_visuals.main import napkin_visuals
from napkin_visuals.tools import STYLES_URL
from tests.api_stub import API_URL, ApiStub, RecordingSleep, file_payload, status_payload

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Visual Commands"),
]


@pytest.fixture()
def cli_env(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for name in ("NAPKIN_CONFIG_PATH", "NAPKIN_STORAGE_TYPE", "NAPKIN_API_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NAPKIN_API_KEY", "cli-key")
    return tmp_path


def _install(monkeypatch, handler) -> None:
    def factory(settings: Settings) -> NapkinClient:
        return NapkinClient(
            settings.api_key,
            base_url=API_URL,
            transport=httpx.MockTransport(handler),
            sleep=RecordingSleep(),
        )

    monkeypatch.setattr(main, "VISUAL_CONTROLLER", VisualCliController(client_factory=factory))


def test_styles_needs_no_configuration(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NAPKIN_API_KEY", raising=False)

    result = CliRunner().invoke(napkin_visuals, ["styles"])

    assert result.exit_code == 0
    assert json.loads(result.output)["styles_url"] == STYLES_URL


def test_generate_prints_submission(cli_env: Path, monkeypatch) -> None:
    stub = ApiStub([status_payload()])
    _install(monkeypatch, stub)

    result = CliRunner().invoke(
        napkin_visuals,
        [
            "generate",
            "Release timeline",
            "--format",
            "png",
            "--number-of-visuals",
            "2",
            "--visual-queries",
            "timeline",
            "--visual-queries",
            "roadmap",
            "--transparent-background",
        ],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"id": "req-1", "status": "pending"}
    assert json.loads(stub.requests[0].content) == {
        "format": "png",
        "content": "Release timeline",
        "visual_queries": ["timeline", "roadmap"],
        "number_of_visuals": 2,
        "transparent_background": True,
    }
    assert stub.requests[0].headers["Authorization"] == "Bearer cli-key"


def test_status_prints_files(cli_env: Path, monkeypatch) -> None:
    _install(monkeypatch, ApiStub([status_payload(files=[file_payload("f1")])]))

    result = CliRunner().invoke(napkin_visuals, ["status", "req-1"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["generated_files"][0]["file_id"] == "f1"


def test_download_to_output_file(cli_env: Path, monkeypatch) -> None:
    _install(
        monkeypatch,
        ApiStub([status_payload(files=[file_payload("f1")])], files={"f1": b"<svg/>"}),
    )
    target = cli_env / "out" / "visual.svg"

    result = CliRunner().invoke(
        napkin_visuals,
        ["download", "req-1", "f1", "--output", str(target)],
    )

    assert result.exit_code == 0, result.output
    assert target.read_bytes() == b"<svg/>"
    assert "Saved 6 bytes" in result.output


def test_wait_prints_completed_status(cli_env: Path, monkeypatch) -> None:
    _install(monkeypatch, ApiStub([status_payload(files=[file_payload("f1")])]))

    result = CliRunner().invoke(napkin_visuals, ["wait", "Hello"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["status"] == "completed"


def test_save_uses_local_storage_from_environment(cli_env: Path, monkeypatch) -> None:
    _install(
        monkeypatch,
        ApiStub([status_payload(files=[file_payload("f1")])], files={"f1": b"<svg/>"}),
    )
    monkeypatch.setenv("NAPKIN_STORAGE_TYPE", "local")
    monkeypatch.setenv("NAPKIN_STORAGE_LOCAL_DIR", str(cli_env / "visuals"))

    result = CliRunner().invoke(napkin_visuals, ["save", "Hello", "--filename", "hello"])

    assert result.exit_code == 0, result.output
    assert (cli_env / "visuals" / "hello.svg").read_bytes() == b"<svg/>"
    assert json.loads(result.output)["request_id"] == "req-1"


def test_save_without_storage_fails(cli_env: Path, monkeypatch) -> None:
    stub = ApiStub([status_payload()])
    _install(monkeypatch, stub)

    result = CliRunner().invoke(napkin_visuals, ["save", "Hello"])

    assert result.exit_code == 1
    assert "Storage not configured" in result.output
    assert stub.requests == []


def test_verify_key_reports_invalid_key(cli_env: Path, monkeypatch) -> None:
    _install(monkeypatch, lambda _request: httpx.Response(401, json={"error": "unauthorized"}))

    result = CliRunner().invoke(napkin_visuals, ["verify-key"])

    assert result.exit_code == 1
    assert "Invalid or expired API key (401)" in result.output


def test_verify_key_accepts_not_found_probe(cli_env: Path, monkeypatch) -> None:
    _install(monkeypatch, lambda _request: httpx.Response(404, json={}))

    result = CliRunner().invoke(napkin_visuals, ["--verbose", "verify-key"])

    assert result.exit_code == 0, result.output
    assert '"valid": true' in result.output


def test_missing_api_key_is_a_usage_error(cli_env: Path, monkeypatch) -> None:
    monkeypatch.delenv("NAPKIN_API_KEY")
    _install(monkeypatch, ApiStub([status_payload()]))

    result = CliRunner().invoke(napkin_visuals, ["status", "req-1"])

    assert result.exit_code == 1
    assert "api_key" in result.output


def test_call_rejects_non_json_arguments(cli_env: Path, monkeypatch) -> None:
    _install(monkeypatch, ApiStub([status_payload()]))

    result = CliRunner().invoke(napkin_visuals, ["call", "check_status", "{oops"])

    assert result.exit_code == 1
    assert "valid JSON" in result.output


def test_call_dispatches_tool(cli_env: Path, monkeypatch) -> None:
    _install(monkeypatch, ApiStub([status_payload(status="processing")]))

    result = CliRunner().invoke(
        napkin_visuals,
        ["call", "check_status", json.dumps({"request_id": "req-1"})],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["status"] == "processing"


def test_generate_surfaces_api_errors(cli_env: Path, monkeypatch) -> None:
    _install(monkeypatch, lambda _request: httpx.Response(400, text="bad"))

    result = CliRunner().invoke(napkin_visuals, ["generate", "Hello"])

    assert result.exit_code == 1
    assert "400" in result.output
