"""CLI commands for the build orchestrator."""

import asyncio
from pathlib import Path
from typing import List, Optional

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .core.config import settings
from .core.exceptions import ConfigurationError
from .core.logging import setup_logging
from .models.build import BuildMode, BuildPlan, BuildReport, OutcomeStatus
from .services.build_orchestrator import BuildOrchestrator
from .services.git_sync import GitSyncOperator
from .services.gitlab import GitLabClient
from .services.pipeline_provider import PipelineProvider
from .services.progress import ProgressKind, ProgressLine

app = typer.Typer(
    name="build-orchestrator",
    help="Merge, staleness-check and build services on GitLab CI",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)

KIND_STYLES = {
    ProgressKind.INFO: None,
    ProgressKind.ERROR: "red",
    ProgressKind.SYSTEM: "bold cyan",
}

STATUS_STYLES = {
    OutcomeStatus.SUCCEEDED: "green",
    OutcomeStatus.FAILED: "red",
    OutcomeStatus.SKIPPED: "yellow",
    OutcomeStatus.UP_TO_DATE: "dim",
}


def print_progress(line: ProgressLine) -> None:
    """Render one progress line on the console."""
    if line.job is not None and line.kind == ProgressKind.INFO and not line.text.startswith("[job "):
        # Raw job log output is printed untouched
        console.out(line.text, end="" if line.text.endswith("\n") else "\n", highlight=False)
        return
    prefix = f"[{line.service}{' >>> ' + line.environment if line.environment else ''}] " if line.service else ""
    console.print(f"{prefix}{line.text}", style=KIND_STYLES[line.kind], markup=False, highlight=False)


def print_report(report: BuildReport) -> None:
    table = Table(title="Build Report")
    table.add_column("Service", style="cyan")
    table.add_column("Environment")
    table.add_column("Status")
    table.add_column("Message")

    for outcome in report.outcomes:
        table.add_row(
            outcome.service,
            outcome.environment or "-",
            f"[{STATUS_STYLES[outcome.status]}]{outcome.status.value}[/]",
            outcome.message,
        )

    if report.outcomes:
        console.print(table)
    if report.aborted:
        console.print(f"❌ Build aborted: {report.error}")
    elif report.is_noop and report.succeeded:
        console.print("✅ Nothing to build")
    elif report.succeeded:
        console.print("✅ All builds succeeded")
    else:
        console.print(f"❌ {len(report.failed)} build(s) failed")


def load_plan(path: Path) -> BuildPlan:
    try:
        return BuildPlan.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read build plan {path}: {e}", config_key="plan") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid build plan {path}: {e}", config_key="plan") from e


@app.command()
def version():
    """Show application version."""
    console.print(f"{settings.app_name} v{settings.app_version}")


@app.command()
def config():
    """Show current configuration."""
    table = Table(title="Build Orchestrator Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    token = settings.gitlab_api_token
    table.add_row("GitLab URL", settings.gitlab_base_url)
    table.add_row("GitLab Token", f"{token[:4]}***" if token else "<not set>")
    table.add_row("Poll Interval (s)", str(settings.pipeline_poll_interval))
    table.add_row("Max Poll Attempts", str(settings.pipeline_max_attempts))
    table.add_row("Environment Variable", settings.pipeline_environment_variable)
    table.add_row("Pool Workers", str(settings.build_pool_workers))
    table.add_row("Queue Capacity", str(settings.build_queue_capacity))
    table.add_row("Git Remote", settings.git_remote)
    table.add_row("Log Level", settings.log_level)

    console.print(table)


@app.command()
def build(
    plan: Path = typer.Option(..., "--plan", "-p", help="Build plan JSON file"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Build branch"),
    feature: Optional[str] = typer.Option(None, "--feature", "-f", help="Feature branch to merge"),
    merge: bool = typer.Option(False, "--merge", "-m", help="Merge the feature branch and build only changed services"),
    env: Optional[List[str]] = typer.Option(None, "--env", "-e", help="Target environment (repeatable)"),
    service: Optional[List[str]] = typer.Option(None, "--service", "-s", help="Service to build (repeatable)"),
):
    """Build services on GitLab CI."""
    setup_logging()

    try:
        build_plan = load_plan(plan)
        request = build_plan.to_request(
            build_branch=branch,
            feature_branch=feature,
            mode=BuildMode.MERGE if merge else BuildMode.DIRECT,
            services=service,
            environments=env,
        )
        BuildOrchestrator.validate(request)
        report = asyncio.run(_run_build(request))
    except ConfigurationError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=2)
    except ValueError as e:
        console.print(f"❌ {e}")
        raise typer.Exit(code=2)

    print_report(report)
    if not report.succeeded:
        raise typer.Exit(code=1)


async def _run_build(request):
    async with GitLabClient() as client:
        orchestrator = BuildOrchestrator(
            provider=PipelineProvider(client),
            git=GitSyncOperator(),
            sink=print_progress,
        )
        return await orchestrator.run(request)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
