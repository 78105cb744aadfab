"""CLI entrypoint for napkin-visuals."""

import logging
from pathlib import Path
from typing import Any

import rich_click as click

from napkin_visuals import __version__
from napkin_visuals.controllers import (
    DownloadCommand,
    GenerateCommand,
    SaveCommand,
    StatusCommand,
    ToolCallCommand,
    VisualCliController,
)
from napkin_visuals.errors import NapkinError
from napkin_visuals.models import (
    ColorMode,
    Orientation,
    OutputFormat,
    SortStrategy,
    TextExtractionMode,
)

click.rich_click.USE_MARKDOWN = True
VISUAL_CONTROLLER = VisualCliController()

_CONFIG_OPTION = click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="JSON config file. Defaults to NAPKIN_CONFIG_PATH or ./config.json.",
)


def _choice(enum_type: type) -> click.Choice:
    return click.Choice([member.value for member in enum_type])


def _request_options(command):
    """Attach every generation request parameter as an option."""

    options = [
        click.argument("content"),
        click.option("--format", "format_", type=_choice(OutputFormat), default=None),
        click.option("--context", default=None, help="Extra context not rendered in the visual."),
        click.option("--language", default=None, help="BCP 47 language tag, for example en-US."),
        click.option("--style-id", default=None, help="Style identifier."),
        click.option("--visual-id", default=None, help="Regenerate a specific visual layout."),
        click.option(
            "--visual-ids",
            multiple=True,
            help="One layout id per visual. Can be repeated.",
        ),
        click.option("--visual-query", default=None, help="Visual type query, e.g. 'mindmap'."),
        click.option(
            "--visual-queries",
            multiple=True,
            help="One visual type query per visual. Can be repeated.",
        ),
        click.option(
            "--number-of-visuals",
            "-n",
            type=click.IntRange(min=1, max=4),
            default=None,
        ),
        click.option("--transparent-background/--opaque-background", default=None),
        click.option("--color-mode", type=_choice(ColorMode), default=None),
        click.option("--width", type=click.IntRange(min=100, max=10_000), default=None),
        click.option("--height", type=click.IntRange(min=100, max=10_000), default=None),
        click.option("--orientation", type=_choice(Orientation), default=None),
        click.option(
            "--text-extraction-mode",
            type=_choice(TextExtractionMode),
            default=None,
        ),
        click.option("--sort-strategy", type=_choice(SortStrategy), default=None),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def _request_arguments(content: str, options: dict[str, Any]) -> dict[str, Any]:
    arguments: dict[str, Any] = {"content": content}
    for name, value in options.items():
        key = "format" if name == "format_" else name
        if value is None or value == ():
            continue
        arguments[key] = list(value) if isinstance(value, tuple) else value
    return arguments


@click.group()
@click.version_option(version=__version__, prog_name="napkin-visuals")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
def napkin_visuals(verbose: bool) -> None:
    """Generate Napkin AI visuals from text and deliver them to storage."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@napkin_visuals.command("generate")
@_CONFIG_OPTION
@_request_options
def generate(config_path: Path | None, content: str, **options: Any) -> None:
    """Submit a generation request and print its request id."""

    _emit_lines(
        _guarded(
            VISUAL_CONTROLLER.generate,
            GenerateCommand(
                config_path=config_path,
                arguments=_request_arguments(content, options),
            ),
        ),
    )


@napkin_visuals.command("status")
@_CONFIG_OPTION
@click.argument("request_id")
def status(config_path: Path | None, request_id: str) -> None:
    """Show the status and generated files of a request."""

    _emit_lines(
        _guarded(
            VISUAL_CONTROLLER.status,
            StatusCommand(config_path=config_path, request_id=request_id),
        ),
    )


@napkin_visuals.command("download")
@_CONFIG_OPTION
@click.argument("request_id")
@click.argument("file_id")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Write the file here instead of printing base64 JSON.",
)
def download(config_path: Path | None, request_id: str, file_id: str, output: Path | None) -> None:
    """Download one generated file of a completed request."""

    _emit_lines(
        _guarded(
            VISUAL_CONTROLLER.download,
            DownloadCommand(
                config_path=config_path,
                request_id=request_id,
                file_id=file_id,
                output=output,
            ),
        ),
    )


@napkin_visuals.command("wait")
@_CONFIG_OPTION
@_request_options
def wait(config_path: Path | None, content: str, **options: Any) -> None:
    """Generate a visual and poll until it completes."""

    _emit_lines(
        _guarded(
            VISUAL_CONTROLLER.wait,
            GenerateCommand(
                config_path=config_path,
                arguments=_request_arguments(content, options),
            ),
        ),
    )


@napkin_visuals.command("save")
@_CONFIG_OPTION
@click.option("--filename", default=None, help="Base filename without extension.")
@_request_options
def save(config_path: Path | None, filename: str | None, content: str, **options: Any) -> None:
    """Generate a visual, wait, and store every file in configured storage."""

    _emit_lines(
        _guarded(
            VISUAL_CONTROLLER.save,
            SaveCommand(
                config_path=config_path,
                arguments=_request_arguments(content, options),
                filename=filename,
            ),
        ),
    )


@napkin_visuals.command("styles")
def styles() -> None:
    """Point to the catalogue of available styles."""

    _emit_lines(VISUAL_CONTROLLER.styles())


@napkin_visuals.command("verify-key")
@_CONFIG_OPTION
def verify_key(config_path: Path | None) -> None:
    """Check that the configured API key is accepted."""

    valid, lines = _guarded(VISUAL_CONTROLLER.verify_key, config_path)
    _emit_lines(lines)
    if not valid:
        raise click.ClickException("API key verification failed.")


@napkin_visuals.command("call")
@_CONFIG_OPTION
@click.argument("name")
@click.argument("arguments_json", default="{}")
def call(config_path: Path | None, name: str, arguments_json: str) -> None:
    """Invoke a tool by name with a JSON object of arguments."""

    _emit_lines(
        _guarded(
            VISUAL_CONTROLLER.call,
            ToolCallCommand(config_path=config_path, name=name, arguments_json=arguments_json),
        ),
    )


def _guarded(handler, argument):
    try:
        return handler(argument)
    except (NapkinError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    napkin_visuals()
