# src/missionflow/cli.py
"""missionflow Command Line Interface.

Entry point for the missionflow CLI tool: validate, lay out and inspect
team pipeline configuration files.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from missionflow import __version__
from missionflow.contracts import LayoutDirection, PipelineConfiguration
from missionflow.core.config import MissionflowSettings, load_settings
from missionflow.core.logging import pipeline_context
from missionflow.core.pipeline import (
    agent_lookup_from,
    auto_layout_graph,
    calculate_bounding_box,
    compute_ranks,
    find_entry_stages,
    find_exit_stages,
    graph_to_stages,
    load_pipeline,
    refresh_pipeline,
    save_pipeline,
    stages_to_graph,
    validate_pipeline_graph,
)

__all__ = [
    "app",
]

app = typer.Typer(
    name="missionflow",
    help="missionflow: team pipeline validation and layout.",
    no_args_is_help=True,
)


@dataclass
class CliState:
    """Options resolved by the main callback, shared with subcommands."""

    settings: MissionflowSettings = field(default_factory=MissionflowSettings)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"missionflow version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]❌ {title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _pydantic_details(error: ValidationError) -> list[str]:
    details = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        details.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return details


def _load_settings_or_exit(settings_path: Path) -> MissionflowSettings:
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        # Must be before ValueError - ValidationError inherits from it
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=_pydantic_details(e),
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        error_msg = str(e)
        if "environment variable" in error_msg.lower():
            import re

            match = re.search(r"'(\w+)'", error_msg)
            var_name = match.group(1) if match else "VARIABLE"
            _format_validation_error(
                title="Missing Environment Variable",
                message=error_msg,
                hint=f'Set the variable: export {var_name}="your-value"\n         Or use optional syntax: ${{{var_name}:-default}}',
            )
        else:
            _format_validation_error(
                title="Configuration Error",
                message=error_msg,
            )
        raise typer.Exit(1) from None


def _load_pipeline_or_exit(pipeline_path: Path, settings: MissionflowSettings) -> PipelineConfiguration:
    try:
        return load_pipeline(pipeline_path, settings.validation)
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Pipeline file does not exist: {pipeline_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        _format_validation_error(
            title="Malformed Pipeline",
            message=f"{pipeline_path.name} is not a valid pipeline configuration",
            details=_pydantic_details(e),
            hint="Pipeline files are JSON with camelCase keys (id, name, stages, nextStageIds, ...).",
        )
        raise typer.Exit(1) from None


def _state(ctx: typer.Context) -> CliState:
    if isinstance(ctx.obj, CliState):
        return ctx.obj
    return CliState()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file (defaults apply when omitted).",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # We handle existence check ourselves for better error message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """missionflow: team pipeline validation and layout."""
    from missionflow.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )

    # .env must be loaded first so ${VAR} expansion sees it
    state = CliState()
    if settings is not None:
        state.settings = _load_settings_or_exit(settings.expanduser())
    ctx.obj = state


@app.command()
def validate(
    ctx: typer.Context,
    pipeline: Path = typer.Argument(..., help="Pipeline configuration JSON file."),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output findings as JSON.",
    ),
) -> None:
    """Validate a pipeline's stage graph.

    Exits with status 1 when the pipeline has blocking errors. Warnings are
    reported but never fail validation.
    """
    settings = _state(ctx).settings
    config = _load_pipeline_or_exit(pipeline.expanduser(), settings)
    with pipeline_context(config.id):
        result = validate_pipeline_graph(config.stages, settings.validation)

        if json_output:
            payload = {
                "pipelineId": config.id,
                "isValid": result.is_valid,
                "entryStageIds": list(config.entry_stage_ids),
                "findings": [
                    {
                        "code": str(finding.code),
                        "severity": str(finding.severity),
                        "message": finding.message,
                        "stageIds": list(finding.stage_ids),
                    }
                    for finding in result.findings
                ],
            }
            typer.echo(json.dumps(payload, indent=2))
            if not result.is_valid:
                raise typer.Exit(1)
            return

        if not result.is_valid:
            _format_validation_error(
                title="Pipeline Graph Error",
                message=f"Pipeline {config.name!r} ({config.id}) is not valid",
                details=result.errors,
                hint="Check for cycles, dangling stage references, or a missing entry stage.",
            )
        else:
            typer.echo("✅ Pipeline configuration valid!")
            typer.echo(f"  Pipeline: {config.name} ({config.id})")
            typer.echo(f"  Stages: {len(config.stages)}")
            typer.echo(f"  Entry stages: {', '.join(config.entry_stage_ids)}")
            typer.echo(f"  Exit stages: {', '.join(find_exit_stages(config.stages))}")

        for warning in result.warnings:
            typer.secho(f"⚠ {warning}", fg=typer.colors.YELLOW, err=True)

        if not result.is_valid:
            raise typer.Exit(1)


@app.command()
def layout(
    ctx: typer.Context,
    pipeline: Path = typer.Argument(..., help="Pipeline configuration JSON file."),
    direction: LayoutDirection | None = typer.Option(
        None,
        "--direction",
        "-d",
        help="Layout direction: TB (top-bottom) or LR (left-right). Overrides settings.",
    ),
    write: bool = typer.Option(
        False,
        "--write",
        "-w",
        help="Write the new positions back to the pipeline file.",
    ),
) -> None:
    """Auto-layout a pipeline and print stage ranks and positions."""
    settings = _state(ctx).settings
    pipeline_path = pipeline.expanduser()
    config = _load_pipeline_or_exit(pipeline_path, settings)
    with pipeline_context(config.id):
        layout_settings = settings.layout
        if direction is not None:
            layout_settings = layout_settings.model_copy(update={"direction": direction})

        graph = stages_to_graph(config.stages, agent_lookup_from(()))
        ranks = compute_ranks(graph.nodes, graph.edges, max_rounds=layout_settings.max_relaxation_rounds)
        nodes = auto_layout_graph(graph.nodes, graph.edges, layout_settings)

        for node in nodes:
            typer.echo(f"{node.id}\trank={ranks[node.id]}\tx={node.position.x:g}\ty={node.position.y:g}")
        box = calculate_bounding_box(nodes, layout_settings)
        typer.echo(f"Bounding box: {box.width:g} x {box.height:g}")

        if write:
            stages = graph_to_stages(nodes, graph.edges)
            updated = refresh_pipeline(config.model_copy(update={"stages": tuple(stages)}), settings.validation)
            save_pipeline(updated, pipeline_path)
            typer.echo(f"Wrote layout to {pipeline_path}")


@app.command("entry-points")
def entry_points(
    ctx: typer.Context,
    pipeline: Path = typer.Argument(..., help="Pipeline configuration JSON file."),
) -> None:
    """Print the pipeline's entry stage ids, one per line."""
    settings = _state(ctx).settings
    config = _load_pipeline_or_exit(pipeline.expanduser(), settings)
    for stage_id in find_entry_stages(config.stages):
        typer.echo(stage_id)


if __name__ == "__main__":
    app()
