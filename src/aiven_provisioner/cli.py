"""Typer CLI for the Aiven provisioner."""

from __future__ import annotations

import contextlib
import signal
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import structlog
import typer
from rich.console import Console
from rich.table import Table

from aiven_provisioner.client.aiven import AivenAPIError, AivenClient
from aiven_provisioner.config.loader import load_provider_config, load_resources
from aiven_provisioner.config.models import (
    KafkaTopicSpec,
    ProviderConfig,
    ResourcesFile,
    WaiterConfig,
)
from aiven_provisioner.observability.logging import configure_logging
from aiven_provisioner.resources.kafka_topic import (
    KafkaTopicChangeWaiter,
    KafkaTopicResource,
    kafka_topic_id,
)
from aiven_provisioner.resources.project import ProjectResource, project_id

logger = structlog.get_logger()
console = Console()
app = typer.Typer(name="aiven-provisioner", help="Aiven Kafka topic/project provisioner")


def _load(
    resources_path: str,
    provider_config: str | None = None,
    *,
    error_label: str = "Invalid configuration",
) -> tuple[ResourcesFile, ProviderConfig]:
    path = Path(resources_path)
    if not path.exists():
        console.print(f"[red]Resources file not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        resources = load_resources(path)
    except Exception as exc:
        console.print(f"[red]{error_label}:[/red] {exc}")
        raise typer.Exit(1) from exc
    provider = _load_provider(provider_config, error_label=error_label)
    return resources, provider


def _load_provider(
    provider_config: str | None,
    *,
    error_label: str = "Invalid configuration",
) -> ProviderConfig:
    try:
        provider = load_provider_config(
            Path(provider_config) if provider_config else None
        )
    except Exception as exc:
        console.print(f"[red]{error_label}:[/red] {exc}")
        raise typer.Exit(1) from exc
    configure_logging(provider.log_level, json_logs=provider.json_logs)
    return provider


@contextlib.contextmanager
def _cancel_on_signal() -> Iterator[threading.Event]:
    """Yield an event that SIGINT/SIGTERM will set; restore handlers on exit."""
    cancel = threading.Event()

    def _shutdown(signum: int, frame: Any) -> None:
        logger.info("provisioner.shutdown_signal", signal=signum)
        cancel.set()

    previous = {
        sig: signal.signal(sig, _shutdown) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield cancel
    finally:
        for sig, handler in previous.items():
            # None means the handler was not installed from Python
            if handler is not None:
                signal.signal(sig, handler)


def _is_not_found(exc: Exception) -> bool:
    return isinstance(exc, AivenAPIError) and exc.status_code == 404


@app.command()
def validate(
    resources_path: str = typer.Argument(..., help="Path to resources YAML"),
    provider_config: str | None = typer.Option(
        None, "--provider-config", help="Provider YAML"
    ),
) -> None:
    """Validate a resources file and the provider configuration."""
    resources, provider = _load(
        resources_path, provider_config, error_label="Validation error"
    )

    console.print("[green]Valid[/green]")
    console.print(f"  api:      {provider.aiven.api_url}")
    console.print(f"  projects: {len(resources.projects)}")
    for p in resources.projects:
        console.print(f"    - {p.project} (cloud={p.cloud or 'default'})")
    console.print(f"  topics:   {len(resources.kafka_topics)}")
    for t in resources.kafka_topics:
        console.print(
            f"    - {kafka_topic_id(t.project, t.service_name, t.topic)} "
            f"(partitions={t.partitions}, replication={t.replication})"
        )
    waiter = provider.waiter
    console.print(
        f"  waiter:   {waiter.pending_states} -> {waiter.target_states}, "
        f"timeout={waiter.timeout_seconds}s"
    )


def _apply_topic(
    resource: KafkaTopicResource, spec: KafkaTopicSpec
) -> tuple[str, str, str]:
    resource_id = kafka_topic_id(spec.project, spec.service_name, spec.topic)
    try:
        resource.read(resource_id)
    except AivenAPIError as exc:
        if not _is_not_found(exc):
            raise
        _, state = resource.create(spec)
        return resource_id, "created", state.state
    state = resource.update(spec)
    return resource_id, "updated", state.state


@app.command()
def apply(
    resources_path: str = typer.Argument(..., help="Path to resources YAML"),
    provider_config: str | None = typer.Option(
        None, "--provider-config", help="Provider YAML"
    ),
) -> None:
    """Create or update every project and Kafka topic in the resources file."""
    resources, provider = _load(resources_path, provider_config)

    table = Table(title="Applied Resources")
    table.add_column("Resource", style="cyan")
    table.add_column("Action")
    table.add_column("State")

    try:
        with _cancel_on_signal() as cancel, AivenClient(provider.aiven) as client:
            projects = ProjectResource(client)
            for p in resources.projects:
                try:
                    projects.read(p.project)
                except AivenAPIError as exc:
                    if not _is_not_found(exc):
                        raise
                    rid, _ = projects.create(p)
                    table.add_row(rid, "created", "-")
                else:
                    projects.update(p)
                    table.add_row(project_id(p.project), "updated", "-")

            topics = KafkaTopicResource(
                client, provider.waiter.to_wait_configuration(), cancel=cancel
            )
            for t in resources.kafka_topics:
                rid, action, state = _apply_topic(topics, t)
                table.add_row(rid, action, f"[green]{state}[/green]")
    except Exception as exc:
        console.print(table)
        console.print(f"[red]Apply failed:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print(table)


def _delete_each(
    ids: list[str], delete: Callable[[str], None], kind: str
) -> None:
    for rid in ids:
        try:
            delete(rid)
        except AivenAPIError as exc:
            if not _is_not_found(exc):
                raise
            logger.info(f"{kind}.already_deleted", id=rid)
            console.print(f"[yellow]Already gone[/yellow] {rid}")
        else:
            console.print(f"[green]Deleted[/green] {rid}")


@app.command()
def destroy(
    resources_path: str = typer.Argument(..., help="Path to resources YAML"),
    provider_config: str | None = typer.Option(
        None, "--provider-config", help="Provider YAML"
    ),
    include_projects: bool = typer.Option(
        False, "--include-projects", help="Also delete projects"
    ),
) -> None:
    """Delete the Kafka topics (and optionally projects) in the resources file."""
    resources, provider = _load(resources_path, provider_config)

    try:
        with AivenClient(provider.aiven) as client:
            _delete_each(
                [
                    kafka_topic_id(t.project, t.service_name, t.topic)
                    for t in resources.kafka_topics
                ],
                KafkaTopicResource(client).delete,
                "kafka_topic",
            )
            if include_projects:
                _delete_each(
                    [project_id(p.project) for p in resources.projects],
                    ProjectResource(client).delete,
                    "project",
                )
    except Exception as exc:
        console.print(f"[red]Destroy failed:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command("topic-status")
def topic_status(
    resource_id: str = typer.Argument(..., help="<project>/<service>/<topic>"),
    provider_config: str | None = typer.Option(
        None, "--provider-config", help="Provider YAML"
    ),
) -> None:
    """Show the current state of one Kafka topic."""
    provider = _load_provider(provider_config)
    try:
        with AivenClient(provider.aiven) as client:
            state = KafkaTopicResource(client).read(resource_id)
    except Exception as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    table = Table(title=resource_id)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in vars(state).items():
        table.add_row(name, str(value))
    console.print(table)


@app.command("wait-topic")
def wait_topic(
    project: str = typer.Argument(..., help="Project name"),
    service_name: str = typer.Argument(..., help="Kafka service name"),
    topic: str = typer.Argument(..., help="Topic name"),
    provider_config: str | None = typer.Option(
        None, "--provider-config", help="Provider YAML"
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Override the waiter timeout (seconds)"
    ),
) -> None:
    """Block until a Kafka topic reaches its target state."""
    provider = _load_provider(provider_config)
    try:
        waiter_cfg = provider.waiter
        if timeout is not None:
            waiter_cfg = WaiterConfig.model_validate(
                {**waiter_cfg.model_dump(), "timeout_seconds": timeout}
            )
        config = waiter_cfg.to_wait_configuration()
    except ValueError as exc:
        console.print(f"[red]Invalid waiter settings:[/red] {exc}")
        raise typer.Exit(1) from exc

    try:
        with _cancel_on_signal() as cancel, AivenClient(provider.aiven) as client:
            waiter = KafkaTopicChangeWaiter(
                client, project, service_name, topic, config=config
            )
            result = waiter.wait(cancel)
    except Exception as exc:
        console.print(f"[red]{type(exc).__name__}:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print(
        f"[green]{kafka_topic_id(project, service_name, topic)} is {result.state}[/green] "
        f"after {result.attempts} probe(s), {result.elapsed:.1f}s"
    )
