"""Typer CLI wiring Switchboard services."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from switchboard.domain import ExecutionMode, ProgressEvent, build_requests
from switchboard.providers import ProviderError
from switchboard.runtime import JobError, ProgressSink

from .deps import get_container

app = typer.Typer(help="Switchboard command-line interface")
stderr_console = Console(stderr=True)


class ConsoleProgressSink(ProgressSink):
    """Prints progress events to stderr so stdout stays machine readable."""

    def __init__(self, console: Console) -> None:
        self._console = console

    async def emit(self, event: ProgressEvent) -> None:
        self._console.print(f"[dim][{event.completed}/{event.total}][/dim] {event.label}")


def _parse_options(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        options = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"options must be valid JSON: {exc}") from exc
    if not isinstance(options, dict):
        raise typer.BadParameter("options must be a JSON object keyed by provider id")
    return options


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Fan requests out to many providers and drive asynchronous jobs."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=stderr_console, show_path=False)],
        force=True,
    )


@app.command("show-settings")
def show_settings() -> None:
    """Print the resolved application settings."""

    settings = get_container().settings
    typer.echo("Environment:\t" + settings.environment)
    typer.echo(f"Poll interval:\t{settings.poll_interval_seconds:g}s")
    typer.echo(f"Max wait:\t{settings.max_wait_seconds:g}s")
    timeout = settings.per_call_timeout_seconds
    typer.echo("Per-call timeout:\t" + (f"{timeout:g}s" if timeout else "none"))
    typer.echo(f"Max concurrency:\t{settings.max_concurrency or 'unbounded'}")
    typer.echo(f"Status retries:\t{settings.status_retries}")


@app.command("providers")
def list_providers() -> None:
    """List registered providers and the modes they support."""

    registry = get_container().provider_registry
    plugins = registry.list_plugins()
    if not plugins:
        typer.echo("No providers are configured in this environment")
        raise typer.Exit(code=1)

    table = Table(title="Providers")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Direct")
    table.add_column("Jobs")
    for plugin in plugins:
        summary = plugin.capability_summary()
        table.add_row(
            str(summary["provider_id"]),
            str(summary["display_name"]),
            "yes" if summary["supports_direct"] else "no",
            "yes" if summary["supports_jobs"] else "no",
        )
    Console().print(table)


@app.command("fan-out")
def fan_out(
    payload: str = typer.Argument(..., help="Request payload sent to every provider"),
    provider: list[str] | None = typer.Option(
        None, "--provider", "-p", help="Provider id (repeatable); defaults to all"
    ),
    timeout: float | None = typer.Option(None, min=0.1, help="Per-provider timeout in seconds"),
    include_failures: bool = typer.Option(False, help="Also print failed providers"),
    max_concurrency: int | None = typer.Option(None, min=1, help="Cap simultaneous calls"),
    options: str | None = typer.Option(None, help="JSON object of per-provider options"),
) -> None:
    """Send one payload to several providers at once and print the results as JSON."""

    container = get_container()
    registry = container.provider_registry
    provider_ids = list(provider or [])
    if not provider_ids:
        provider_ids = [
            plugin.provider_id for plugin in registry.list_plugins() if plugin.supports_direct
        ]
    for provider_id in provider_ids:
        if not registry.supports(provider_id, ExecutionMode.DIRECT):
            typer.echo(f"Provider '{provider_id}' is not available for direct calls")
            raise typer.Exit(code=1)

    requests = build_requests(provider_ids, payload, _parse_options(options))

    async def _run() -> list[dict[str, Any]]:
        results = await container.fan_out.execute(
            requests,
            per_call_timeout=timeout,
            include_failures=include_failures,
            progress=ConsoleProgressSink(stderr_console),
            max_concurrency=max_concurrency,
        )
        return [result.model_dump(mode="json") for result in results]

    typer.echo(json.dumps(asyncio.run(_run()), indent=2, ensure_ascii=False))


@app.command("run-job")
def run_job(
    payload: str = typer.Argument(..., help="Job payload"),
    provider: str = typer.Option(..., "--provider", "-p", help="Provider id"),
    poll_interval: float | None = typer.Option(None, min=0.1, help="Seconds between polls"),
    max_wait: float | None = typer.Option(None, min=0.1, help="Wall-clock budget in seconds"),
) -> None:
    """Submit an asynchronous job, poll it to completion and print the artifact."""

    container = get_container()
    try:
        plugin = container.provider_registry.get(provider)
        backend = plugin.require_job_backend()
    except (KeyError, ProviderError) as exc:
        typer.echo(str(exc).strip("'\""))
        raise typer.Exit(code=1) from exc

    async def _run() -> Any:
        outcome = await container.job_poller.run_backend(
            backend,
            {"input": payload},
            poll_interval=poll_interval,
            max_wait=max_wait,
            progress=ConsoleProgressSink(stderr_console),
            label=plugin.display_name,
        )
        return container.aggregator.unwrap_job(outcome)

    try:
        artifact = asyncio.run(_run())
    except JobError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}")
        raise typer.Exit(code=1) from exc

    if artifact.urls:
        for url in artifact.urls:
            typer.echo(url)
    elif artifact.content is not None:
        typer.echo(artifact.content.decode("utf-8", errors="replace"))
