"""Image Promoter CLI - typer application entry point."""

from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from promoter import __version__
from promoter.bundle import BundleError
from promoter.observability import close_file_logging, configure_logging
from promoter.pipeline.config import ConfigError, PipelineConfig, load_config
from promoter.pipeline.models import (
    BuildFailed,
    BuildStatus,
    DeploymentFailed,
    DeploymentStatus,
    DeploymentTimedOut,
    PipelineResult,
    Success,
)
from promoter.pipeline.observers import PipelineState
from promoter.services.base import ServiceError

if TYPE_CHECKING:
    from rich.status import Status

    from promoter.pipeline.orchestrator import PipelineOrchestrator

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="promote",
    help="Image Promoter: build a new inference image and roll it out.",
    add_completion=False,
)
console = Console()

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

STATE_HEADINGS: dict[PipelineState, str] = {
    PipelineState.PACKAGING: "📦 Packaging and uploading source",
    PipelineState.BUILD_SUBMITTED: "🔨 Build started",
    PipelineState.BUILD_POLLING: "⏳ Waiting for build to complete",
    PipelineState.DEPLOY_TRIGGERED: "🚀 Service update initiated",
    PipelineState.DEPLOY_POLLING: "📊 Monitoring deployment",
    PipelineState.HEALTH_CHECK: "🏥 Running health check",
}

POLL_HINTS: dict[PipelineState, str] = {
    PipelineState.BUILD_POLLING: "This typically takes 5-10 minutes for the image build.",
    PipelineState.DEPLOY_POLLING: "Waiting for new tasks to start...",
}


class ConsoleObserver:
    """Render pipeline progress on a rich console.

    On a terminal the polling status is a single line refreshed in place;
    otherwise (CI logs, pipes) every tick is printed on its own line.
    """

    def __init__(self, console_: Console) -> None:
        self._console = console_
        self._status: Status | None = None
        self._last_progress: str | None = None

    def on_state_change(self, state: PipelineState, detail: str | None) -> None:
        self._finish_status()

        if state is PipelineState.BUILD_FAILED and detail:
            self._console.print(f"Check the build logs: [cyan]{detail}[/cyan]")
            return
        if state.is_terminal:
            return

        heading = STATE_HEADINGS.get(state)
        if heading is None:
            return
        self._console.print()
        suffix = f": [cyan]{detail}[/cyan]" if detail else ""
        self._console.print(f"[yellow]{heading}[/yellow]{suffix}")

        hint = POLL_HINTS.get(state)
        if hint:
            self._console.print(f"[dim]{hint}[/dim]")
            if self._console.is_terminal:
                self._status = self._console.status(hint)
                self._status.start()

    def on_stage_progress(self, stage: str, observed: Any) -> None:
        line = describe_progress(stage, observed)
        self._last_progress = line
        if self._status is not None:
            self._status.update(line)
        else:
            self._console.print(line, highlight=False)

    def on_warning(self, _stage: str, message: str) -> None:
        self._finish_status()
        self._console.print(f"[yellow]⚠[/yellow]  {message}")

    def close(self) -> None:
        self._finish_status()

    def _finish_status(self) -> None:
        if self._status is None:
            return
        self._status.stop()
        self._status = None
        if self._last_progress:
            self._console.print(self._last_progress, highlight=False)


def describe_progress(stage: str, observed: Any) -> str:
    """One-line description of a polling tick."""
    if isinstance(observed, BuildStatus):
        return f"Build status: {observed.value}"
    if isinstance(observed, DeploymentStatus):
        return f"Deployment: {observed.describe()}"
    return f"{stage}: {observed}"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"promote v{__version__}")
        raise typer.Exit()


@app.command()
def promote(
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="YAML file with pipeline settings (environment variables take precedence).",
            envvar="PROMOTE_CONFIG",
        ),
    ] = None,
    source_dir: Annotated[
        Path | None,
        typer.Option(
            "--source-dir",
            help="Directory to package as the build context (default: ./docker).",
        ),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Also write all log events to this file as JSON lines.",
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Print the resolved configuration and exit without calling any service.",
        ),
    ] = False,
    version: Annotated[  # noqa: ARG001 - handled by callback
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Package source, build the image, roll it out, and check service health."""
    configure_logging(verbosity=verbose, log_file=log_file)

    overrides = {"source_dir": str(source_dir) if source_dir else None}
    try:
        config = load_config(config_file, overrides=overrides)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from None

    if dry_run:
        _print_config(config)
        raise typer.Exit(0)

    console.print("[green]🚀 Starting image promotion pipeline[/green]")
    observer = ConsoleObserver(console)
    orchestrator = _build_orchestrator(config, observer)

    try:
        result = orchestrator.run()
    except KeyboardInterrupt:
        observer.close()
        console.print()
        console.print(f"[yellow]Interrupted during {orchestrator.state.value}.[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED) from None
    except (ServiceError, BundleError) as e:
        observer.close()
        console.print()
        console.print(f"[red]✗[/red] Pipeline aborted during {orchestrator.state.value}")
        console.print(f"  [red]•[/red] {escape(str(e))}")
        raise typer.Exit(1) from None
    finally:
        close_file_logging()

    observer.close()
    _print_result(result, config)
    raise typer.Exit(result.exit_code)


def _build_orchestrator(config: PipelineConfig, observer: ConsoleObserver) -> PipelineOrchestrator:
    """Wire the AWS CLI backends into an orchestrator."""
    from promoter.clients import BuildClient, DeploymentClient, HealthProbe
    from promoter.pipeline.orchestrator import PipelineOrchestrator
    from promoter.services import AwsCli, CodeBuildService, EcsService, S3SourceStore

    cli = AwsCli(region=config.region, profile=config.profile)
    return PipelineOrchestrator(
        config,
        source_store=S3SourceStore(cli),
        build_client=BuildClient(CodeBuildService(cli), region=config.region),
        deployment_client=DeploymentClient(EcsService(cli)),
        health_probe=HealthProbe(timeout=config.health_timeout),
        observer=observer,
    )


def _print_config(config: PipelineConfig) -> None:
    table = Table(title="Resolved configuration", show_header=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        if isinstance(value, float) and math.isinf(value):
            display = "unlimited"
        elif value is None:
            display = "[dim](not set)[/dim]"
        else:
            display = str(value)
        table.add_row(key, display)
    console.print(table)


def _print_result(result: PipelineResult, config: PipelineConfig) -> None:
    console.print()

    if isinstance(result, BuildFailed):
        if result.timed_out:
            last = result.status.value if result.status else "unknown"
            console.print(
                f"[red]❌ Build did not finish within {config.build_max_wait:.0f}s "
                f"(last status: {last})[/red]"
            )
        else:
            status = result.status.value if result.status else "unknown"
            console.print(f"[red]❌ Build failed with status: {status}[/red]")
        console.print(f"  Build: [cyan]{result.build_id}[/cyan]")
        return

    if isinstance(result, DeploymentFailed):
        console.print("[red]❌ Deployment failed![/red]")
        if result.last_status:
            console.print(f"  Last status: {result.last_status.describe()}")
        console.print(f"  Service: [cyan]{config.service_ref}[/cyan]")
        return

    if isinstance(result, Success):
        console.print("[green]✅ Service is healthy![/green]")
        console.print("[green]🎉 Deployment completed successfully![/green]")
    elif result.caveat:
        console.print(f"[yellow]⚠️  {result.caveat}[/yellow]")
        console.print(f"Check the endpoint manually: [cyan]{config.health_endpoint}[/cyan]")

    console.print()
    console.print(_summary_panel(result, config))
    console.print()
    console.print("[bold]Next steps:[/bold]")
    base_url = config.health_url.rstrip("/")
    console.print(
        f"1. Test the OCR endpoint with: curl -X POST {base_url}/ocr/image "
        "-F 'file=@your_image.png'",
        highlight=False,
    )
    profile = f" --profile {config.profile}" if config.profile else ""
    console.print(
        f"2. Monitor logs: aws logs tail {config.log_group} "
        f"--region {config.region}{profile} --follow",
        highlight=False,
    )


def _summary_panel(result: PipelineResult, config: PipelineConfig) -> Panel:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    image = f"built ({result.build_id})"
    if config.account_id:
        image += f", pushed to {config.account_id}.dkr.ecr.{config.region}.amazonaws.com"
    table.add_row("Image", image)

    if isinstance(result, DeploymentTimedOut):
        service_state = "updated (rollout still in progress)"
    elif result.health is not None and not result.health.is_healthy:
        service_state = f"updated (health: {result.health.describe()})"
    else:
        service_state = "updated with new image"
    table.add_row("Service", f"{config.service_ref}: {service_state}")
    table.add_row("Endpoint", config.health_url)
    table.add_row("Health", config.health_endpoint)

    return Panel(table, title="📝 Summary", expand=False)


if __name__ == "__main__":
    app()
