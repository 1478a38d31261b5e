"""Thin CLI wrapper for docker_build_step.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from docker_build_step import __version__
from docker_build_step.config import get_settings, print_settings_json

app = typer.Typer(
    name="docker-build-step",
    help="Docker Build Step - build, tag, publish and clean container images",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def _print_json(data: Any) -> None:
    console.print(json.dumps(data, indent=2), soft_wrap=True, markup=False)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"docker-build-step version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Docker Build Step - build, tag, publish and clean container images."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True)
    else:
        hosts_display = str(settings.hosts_file) if settings.hosts_file else "(none)"
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Database URL:        {settings.db_url}")
        console.print(f"  Logs directory:      {settings.logs_dir}")
        console.print(f"  Hosts file:          {hosts_display}")
        console.print()
        console.print("[bold]Engine:[/bold]")
        console.print(f"  API version:         {settings.docker_api_version}")
        console.print(f"  Timeout (seconds):   {settings.docker_timeout}")
        console.print(f"  Max pool size:       {settings.docker_max_pool_size}")
        console.print()
        console.print("[bold]Step:[/bold]")
        console.print(f"  Default push tag:    {settings.default_push_tag}")
        console.print(f"  Fail on empty tags:  {settings.fail_on_empty_tags}")
        console.print(f"  Log level:           {settings.log_level}")


tags_app = typer.Typer(help="Check tag templates")
app.add_typer(tags_app, name="tags")


@tags_app.command("check")
def tags_check(
    tags_string: Annotated[
        str | None,
        typer.Argument(help="Newline-delimited tag templates"),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Read tag templates from a file"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Validate tag templates without running anything."""
    from docker_build_step.tags.validator import check_tags_string

    if file is not None:
        if not file.exists():
            console.print(f"[red]File not found: {file}[/red]")
            raise typer.Exit(code=1)
        tags_string = file.read_text(encoding="utf-8")

    result = check_tags_string(tags_string)

    if json_output:
        _print_json(
            {
                "ok": result.success,
                "message": result.message,
                "offending_tag": result.details.get("offending_tag"),
            },
        )
    elif result.success:
        console.print(f"[green]✓ {escape(result.message)}[/green]")
    else:
        console.print(f"[red]✗ {escape(result.message)}[/red]")

    if not result.success:
        raise typer.Exit(code=1)


hosts_app = typer.Typer(help="Inspect container hosts")
app.add_typer(hosts_app, name="hosts")


@hosts_app.command("list")
def hosts_list(
    hosts_file: Annotated[
        Path | None,
        typer.Option("--hosts-file", help="Hosts YAML file (default from config)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List declared container hosts and their bound nodes."""
    from pydantic import ValidationError

    from docker_build_step.hosts.resolver import HostRegistry

    path = hosts_file or get_settings().hosts_file
    if path is not None and not path.exists():
        console.print(f"[red]Hosts file not found: {path}[/red]")
        raise typer.Exit(code=1)

    try:
        registry = HostRegistry.from_file(path)
    except (ValidationError, ValueError) as e:
        console.print("[red]Invalid hosts file:[/red]")
        console.print(escape(str(e)))
        raise typer.Exit(code=1) from None

    hosts = registry.hosts
    if json_output:
        _print_json([h.model_dump() for h in hosts])
        return

    if not hosts:
        console.print("[yellow]No hosts declared[/yellow]")
        return

    console.print(f"[bold]Found {len(hosts)} host(s):[/bold]")
    console.print()
    for h in hosts:
        console.print(f"  [green]{h.host_id}[/green]")
        console.print(f"    Endpoint: {h.endpoint_url}")
        console.print(f"    TLS: {h.uses_tls}")
        console.print(f"    Nodes: {', '.join(h.nodes) if h.nodes else '(none)'}")
        console.print()


def _parse_vars(values: list[str] | None) -> dict[str, str]:
    env: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            console.print(f"[red]Invalid variable (expected KEY=VALUE): {item}[/red]")
            raise typer.Exit(code=1)
        env[key] = value
    return env


def _result_to_dict(run: Any, result: Any) -> dict[str, Any]:
    return {
        "run_id": run.id,
        "job": run.job.name if run.job else None,
        "number": run.number,
        "status": run.status,
        "log_path": run.log_path,
        **result.model_dump(),
    }


@app.command("run")
def run_cmd(
    job_name: Annotated[str, typer.Argument(help="Job the step belongs to")],
    context_dir: Annotated[
        str,
        typer.Option("--context", "-c", help="Build context directory"),
    ] = ".",
    tags: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Tag template (can be repeated)"),
    ] = None,
    tags_file: Annotated[
        Path | None,
        typer.Option("--tags-file", help="File with newline-delimited tag templates"),
    ] = None,
    push: Annotated[
        bool,
        typer.Option("--push", help="Push tags after a successful build"),
    ] = False,
    clean: Annotated[
        bool,
        typer.Option("--clean", help="Remove the built image afterwards"),
    ] = False,
    clean_on_delete: Annotated[
        bool,
        typer.Option("--clean-on-delete", help="Remove the image when the job is deleted"),
    ] = False,
    node_name: Annotated[
        str | None,
        typer.Option("--node", "-n", help="Execution node the step runs on"),
    ] = None,
    docker_host: Annotated[
        str | None,
        typer.Option("--docker-host", "-H", help="Bind the node to this engine URL"),
    ] = None,
    hosts_file: Annotated[
        Path | None,
        typer.Option("--hosts-file", help="Hosts YAML file (default from config)"),
    ] = None,
    variables: Annotated[
        list[str] | None,
        typer.Option("--var", help="Build variable KEY=VALUE (can be repeated)"),
    ] = None,
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Workspace directory (default: cwd)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build, tag, optionally push and clean an image."""
    from pydantic import ValidationError

    from docker_build_step.db import create_all_tables, get_engine, get_session_factory
    from docker_build_step.engine.logsink import ConsoleLogSink
    from docker_build_step.hosts.resolver import HostRegistry, Node
    from docker_build_step.runs.service import run_step
    from docker_build_step.step import StepConfig
    from docker_build_step.tags.validator import parse_tags_string
    from docker_build_step.types import HostBinding

    templates = list(tags or [])
    if tags_file is not None:
        if not tags_file.exists():
            console.print(f"[red]File not found: {tags_file}[/red]")
            raise typer.Exit(code=1)
        templates.extend(parse_tags_string(tags_file.read_text(encoding="utf-8")))

    try:
        step_config = StepConfig(
            context_dir=context_dir,
            tags=templates,
            publish_on_success=push,
            clean_local_images=clean,
            clean_on_job_delete=clean_on_delete,
        )
    except ValidationError as e:
        console.print("[red]Invalid step configuration:[/red]")
        console.print(escape(str(e)))
        raise typer.Exit(code=1) from None

    env = _parse_vars(variables)
    settings = get_settings()
    try:
        registry = HostRegistry.from_file(hosts_file or settings.hosts_file)
    except (ValidationError, ValueError, OSError) as e:
        console.print(f"[red]Could not load hosts file: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    node = None
    if docker_host is not None:
        node = Node(
            name=node_name or "local",
            binding=HostBinding(host_id=node_name or "local", endpoint_url=docker_host),
        )
    elif node_name is not None:
        node = registry.node(node_name)

    engine = get_engine()
    create_all_tables(engine)
    factory = get_session_factory(engine)

    with factory() as session:
        run, result = run_step(
            session,
            job_name,
            step_config,
            node=node,
            registry=registry,
            settings=settings,
            workspace=workspace,
            env=env,
            sink=None if json_output else ConsoleLogSink(console),
        )

        if json_output:
            _print_json(_result_to_dict(run, result))
        elif result.success:
            console.print(f"[green]✓ {job_name} #{run.number} succeeded[/green]")
            if result.image_id:
                console.print(f"    Image: {result.image_id}")
        else:
            console.print(f"[red]✗ {job_name} #{run.number} failed[/red]")
            console.print(f"    Error: {escape(str(result.error_message))}")

        if not result.success:
            raise typer.Exit(code=1)


@app.command("worker")
def worker_cmd() -> None:
    """Execute a step request read as JSON from stdin.

    Events are written to stdout as JSON lines: ``log`` for each log line,
    ``built`` once the image is built, and a final ``result``.
    """
    from pydantic import ValidationError

    from docker_build_step.engine.logsink import ChannelLogSink
    from docker_build_step.execution import StepExecutor, StepRequest

    channel = ChannelLogSink(sys.stdout)
    try:
        request = StepRequest.model_validate_json(sys.stdin.read())
    except ValidationError as e:
        channel.emit("result", success=False, error_type="validation", error_message=str(e))
        raise typer.Exit(code=1) from None

    def on_built(image_id: str) -> None:
        channel.emit("built", image_id=image_id)

    result = StepExecutor(request, channel, on_built=on_built).execute()
    channel.emit("result", **result.model_dump())
    if not result.success:
        raise typer.Exit(code=1)


runs_app = typer.Typer(help="Inspect run history")
app.add_typer(runs_app, name="runs")


def _run_to_dict(r: Any) -> dict[str, Any]:
    return {
        "id": r.id,
        "job": r.job.name if r.job else None,
        "number": r.number,
        "status": r.status,
        "node_name": r.node_name,
        "image_id": r.image_id,
        "requested_at": r.requested_at.isoformat() if r.requested_at else None,
        "started_at": r.started_at.isoformat() if r.started_at else None,
        "finished_at": r.finished_at.isoformat() if r.finished_at else None,
        "log_path": r.log_path,
        "error_type": r.error_type,
        "error_message": r.error_message,
        "outcome": r.outcome.to_dict() if r.outcome else None,
    }


@runs_app.command("list")
def runs_list(
    job_name: Annotated[
        str | None,
        typer.Option("--job", "-j", help="Filter by job name"),
    ] = None,
    status: Annotated[
        str | None,
        typer.Option(
            "--status", "-s", help="Filter by status (pending/running/succeeded/failed)"
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of records to return"),
    ] = 100,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List run records."""
    from docker_build_step.db import create_all_tables, get_engine, get_session_factory
    from docker_build_step.runs.service import list_runs
    from docker_build_step.types import RunStatus

    status_filter: RunStatus | None = None
    if status:
        try:
            status_filter = RunStatus(status)
        except ValueError:
            console.print(f"[red]Invalid status: {status}[/red]")
            console.print("Valid values: pending, running, succeeded, failed")
            raise typer.Exit(code=1) from None

    engine = get_engine()
    create_all_tables(engine)
    factory = get_session_factory(engine)

    with factory() as session:
        runs = list_runs(session, job_name=job_name, status=status_filter, limit=limit)

        if not runs:
            if json_output:
                _print_json([])
            else:
                console.print("[yellow]No run records found[/yellow]")
            return

        if json_output:
            _print_json([_run_to_dict(r) for r in runs])
            return

        console.print(f"[bold]Found {len(runs)} run(s):[/bold]")
        console.print()
        for r in runs:
            status_color = {
                "succeeded": "green",
                "failed": "red",
                "running": "blue",
                "pending": "yellow",
            }.get(r.status, "white")
            console.print(
                f"  [{status_color}]Run #{r.id}[/{status_color}] "
                f"{r.job.name} #{r.number}"
            )
            console.print(f"    Status: {r.status}")
            console.print(f"    Node: {r.node_name or 'N/A'}")
            console.print(f"    Image: {r.image_id or 'N/A'}")
            if r.error_message:
                console.print(f"    Error: {escape(r.error_message)}")
            console.print()


@runs_app.command("show")
def runs_show(
    run_id: Annotated[int, typer.Argument(help="Run ID to show")],
    show_log: Annotated[
        bool,
        typer.Option("--log", help="Print the run log"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show details of a run, including its build outcome."""
    from docker_build_step.db import create_all_tables, get_engine, get_session_factory
    from docker_build_step.errors import RunNotFoundError
    from docker_build_step.runs.service import get_run

    engine = get_engine()
    create_all_tables(engine)
    factory = get_session_factory(engine)

    with factory() as session:
        try:
            run = get_run(session, run_id)
        except RunNotFoundError:
            console.print(f"[red]Run not found: {run_id}[/red]")
            raise typer.Exit(code=1) from None

        data = _run_to_dict(run)
        if json_output:
            _print_json(data)
        else:
            console.print(f"[bold]Run #{run.id}[/bold] ({data['job']} #{run.number})")
            console.print(f"  Status: {run.status}")
            console.print(f"  Node: {run.node_name or 'N/A'}")
            console.print(f"  Log: {run.log_path or 'N/A'}")
            if run.error_message:
                console.print(f"  Error: {escape(run.error_message)}")
            outcome = data["outcome"]
            if outcome:
                console.print("  [bold]Outcome:[/bold]")
                console.print(f"    Source: {outcome['sourceUrl'] or 'N/A'}")
                console.print(f"    Image: {outcome['imageId'] or 'N/A'}")
                console.print(f"    Tags: {', '.join(outcome['tags'])}")
                console.print(f"    Published: {outcome['publishOnSuccess']}")
                console.print(
                    f"    Cleanup on job delete: {outcome['cleanupOnJobDelete']}"
                )

        if show_log and run.log_path and Path(run.log_path).exists():
            console.print()
            console.print(Path(run.log_path).read_text(encoding="utf-8"), markup=False)


jobs_app = typer.Typer(help="Manage jobs")
app.add_typer(jobs_app, name="jobs")


@jobs_app.command("delete")
def jobs_delete(
    job_name: Annotated[str, typer.Argument(help="Job to delete")],
    hosts_file: Annotated[
        Path | None,
        typer.Option("--hosts-file", help="Hosts YAML file (default from config)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Delete a job's history, removing images flagged for cleanup."""
    from pydantic import ValidationError

    from docker_build_step.db import (
        create_all_tables,
        get_engine,
        get_session,
        get_session_factory,
    )
    from docker_build_step.engine.logsink import ConsoleLogSink
    from docker_build_step.errors import JobNotFoundError
    from docker_build_step.hosts.resolver import HostRegistry
    from docker_build_step.runs.service import delete_job

    settings = get_settings()
    try:
        registry = HostRegistry.from_file(hosts_file or settings.hosts_file)
    except (ValidationError, ValueError, OSError) as e:
        console.print(f"[red]Could not load hosts file: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    engine = get_engine()
    create_all_tables(engine)
    factory = get_session_factory(engine)

    with get_session(factory) as session:
        try:
            result = delete_job(
                session,
                job_name,
                registry=registry,
                settings=settings,
                sink=None if json_output else ConsoleLogSink(console),
            )
        except JobNotFoundError:
            console.print(f"[red]Job not found: {job_name}[/red]")
            raise typer.Exit(code=1) from None

        if json_output:
            _print_json(
                {
                    "job": result.job_name,
                    "runs_deleted": result.runs_deleted,
                    "images_cleaned": result.images_cleaned,
                    "images_failed": result.images_failed,
                },
            )
        else:
            console.print(
                f"[green]✓ Deleted {job_name} ({result.runs_deleted} run(s))[/green]"
            )
            for image_id in result.images_cleaned:
                console.print(f"    Removed image {image_id}")
            for image_id in result.images_failed:
                console.print(f"    [yellow]Could not remove image {image_id}[/yellow]")


if __name__ == "__main__":
    app()
