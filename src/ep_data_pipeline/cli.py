"""CLI for the EP data pipeline.

Commands:
- get: Fetch an endpoint through the rate-limited, cached pipeline
- config: Show the effective client configuration
- health: Print a health snapshot of the pipeline
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from typing import Annotated, Protocol

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from .config import ClientConfig
from .exceptions import ClientError, describe_error
from .infrastructure.health import HealthLevel
from .infrastructure.pipeline import RequestPipeline


class PipelineBuilder(Protocol):
    """Protocol for constructing the request pipeline used by CLI commands."""

    def __call__(self, *, config: ClientConfig) -> RequestPipeline:
        """Build a pipeline for the given configuration."""
        ...


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: ClientConfig
    pipeline_builder: PipelineBuilder

    def build_pipeline(self) -> RequestPipeline:
        return self.pipeline_builder(config=self.config)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the ep-data entry point.")


class ParamFormatError(typer.BadParameter):
    """Raised when a --param or --json-param value is not KEY=VALUE."""

    def __init__(self, raw: str) -> None:
        super().__init__(f"Expected KEY=VALUE, got {raw!r}.")


class JsonParamError(typer.BadParameter):
    """Raised when a --json-param value is not valid JSON."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Value for {key!r} is not valid JSON.")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _split_pair(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise ParamFormatError(raw)
    return key.strip(), value


def parse_params(
    params: list[str] | None, json_params: list[str] | None
) -> dict[str, object] | None:
    """Combine plain and JSON-valued KEY=VALUE options, preserving order."""
    parsed: dict[str, object] = {}
    for raw in params or []:
        key, value = _split_pair(raw)
        parsed[key] = value
    for raw in json_params or []:
        key, value = _split_pair(raw)
        try:
            parsed[key] = json.loads(value)
        except json.JSONDecodeError as exc:
            raise JsonParamError(key) from exc
    return parsed or None


def create_app(pipeline_builder: PipelineBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided pipeline builder."""
    app = typer.Typer(
        add_completion=False,
        help="European Parliament open data client: rate limited, cached, retried.",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        base_url: Annotated[
            str | None,
            typer.Option("--base-url", help="Override the API base URL (EP_API_URL)"),
        ] = None,
        timeout: Annotated[
            float | None,
            typer.Option("--timeout", help="Per-attempt timeout in seconds"),
        ] = None,
        no_retry: Annotated[
            bool,
            typer.Option("--no-retry", help="Disable retries of transient failures"),
        ] = False,
    ) -> None:
        """Initialise CLI context."""
        config = ClientConfig.from_env().with_overrides(
            base_url=base_url,
            timeout_seconds=timeout,
            enable_retry=False if no_retry else None,
        )
        ctx.obj = CliContext(config=config, pipeline_builder=pipeline_builder)

    @app.command(name="get")
    def get_command(
        ctx: typer.Context,
        endpoint: Annotated[str, typer.Argument(help="Endpoint path relative to the base URL")],
        param: Annotated[
            list[str] | None,
            typer.Option("--param", "-p", help="Query parameter as KEY=VALUE (repeatable)"),
        ] = None,
        json_param: Annotated[
            list[str] | None,
            typer.Option("--json-param", help="JSON-valued query parameter as KEY=JSON"),
        ] = None,
        repeat: Annotated[
            int,
            typer.Option("--repeat", min=1, help="Issue the request N times (exercises the cache)"),
        ] = 1,
    ) -> None:
        """Fetch ENDPOINT and print the JSON payload."""
        state = _get_context(ctx)
        params = parse_params(param, json_param)
        with state.build_pipeline() as pipeline:
            try:
                payload: dict[str, object] = {}
                for _ in range(repeat):
                    payload = pipeline.get(endpoint, params)
            except ClientError as exc:
                rprint(f"[red]✗ {describe_error(exc)}[/red]")
                raise typer.Exit(code=1) from exc
            stats = pipeline.get_cache_stats()
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        rprint(
            f"[green]✓ {endpoint}[/green] cache {stats.size}/{stats.max_size} "
            f"entries, hit rate {stats.hit_rate:.0%}"
        )

    @app.command(name="config")
    def config_command(ctx: typer.Context) -> None:
        """Show the effective client configuration."""
        state = _get_context(ctx)
        table = Table(title="Client configuration")
        table.add_column("Setting")
        table.add_column("Value")
        for item in fields(state.config):
            table.add_row(item.name, str(getattr(state.config, item.name)))
        Console().print(table)

    @app.command(name="health")
    def health_command(ctx: typer.Context) -> None:
        """Print a health snapshot as JSON; exit 1 when unhealthy."""
        state = _get_context(ctx)
        with state.build_pipeline() as pipeline:
            report = pipeline.health()
        typer.echo(json.dumps(asdict(report), indent=2))
        colour = {
            HealthLevel.HEALTHY: "green",
            HealthLevel.DEGRADED: "yellow",
            HealthLevel.UNHEALTHY: "red",
        }[report.status]
        rprint(f"[{colour}]{report.status}[/{colour}] {report.cache.description}")
        if report.status is HealthLevel.UNHEALTHY:
            raise typer.Exit(code=1)

    return app
