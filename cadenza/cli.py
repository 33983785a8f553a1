"""Command line interface for the Cadenza lifecycle controller."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Optional

import typer

from cadenza.config import CadenzaConfig, load_config
from cadenza.contracts import TerminateThenRunJobEvent
from cadenza.db import TaskDB
from cadenza.errors import CadenzaError
from cadenza.jobs import (
    JobEventPublisher,
    JobEventWorker,
    TerminateInstancesJobProcessor,
    TerminateThenRunJobProcessor,
)
from cadenza.models import InstanceAction, InstanceRunUuid, User
from cadenza.overview.service import ProgressService
from cadenza.persistence import WorkflowInstanceRepository, get_repository
from cadenza.transports import BaseTransport, get_transport

app = typer.Typer(help="CLI for the Cadenza workflow-instance lifecycle controller")

# Command groups
worker_app = typer.Typer(help="Commands for running job workers")
instance_app = typer.Typer(help="Commands for inspecting and terminating instances")

app.add_typer(worker_app, name="worker")
app.add_typer(instance_app, name="instance")


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="Root logging level, e.g. DEBUG or INFO"
    ),
) -> None:
    """Cadenza CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_run(value: str) -> InstanceRunUuid:
    parts = value.split(":", 2)
    if len(parts) != 3 or not parts[0].isdigit() or not parts[1].isdigit():
        raise typer.BadParameter(
            f"Expected INSTANCE_ID:RUN_ID:UUID, got [{value}]"
        )
    return InstanceRunUuid(instance_id=int(parts[0]), run_id=int(parts[1]), uuid=parts[2])


def _build_coordinator(
    transport: BaseTransport,
    repository: WorkflowInstanceRepository,
    config: CadenzaConfig,
) -> TerminateThenRunJobProcessor:
    publisher = JobEventPublisher(transport, config.jobs)
    return TerminateThenRunJobProcessor(
        publisher, repository, TerminateInstancesJobProcessor(repository)
    )


@worker_app.command("run")
def worker_run(
    topic: Optional[str] = typer.Option(
        None, help="Topic to consume (default: the configured terminate topic)"
    ),
    lifespan: Optional[float] = typer.Option(
        None, help="Worker timeout in seconds (default: run indefinitely)"
    ),
) -> None:
    """
    Run a worker that processes terminate-then-run jobs.

    Retryable results are redelivered with backoff until the configured
    maximum number of attempts; internal errors are dead-lettered.

    Example:
        cadenza worker run
        cadenza --log-level INFO worker run --lifespan 300
    """
    config = load_config()
    transport = get_transport(config=config)
    repository = get_repository()
    coordinator = _build_coordinator(transport, repository, config)
    worker = JobEventWorker(
        transport,
        topic or config.jobs.terminate_topic,
        {"TERMINATE_THEN_RUN": coordinator},
        config.jobs,
    )
    typer.echo(f"Starting worker on: {topic or config.jobs.terminate_topic}")

    async def _run() -> None:
        async with transport:
            await worker.start(lifespan=lifespan)

    asyncio.run(_run())


@instance_app.command("list")
def instance_list(
    workflow_id: Optional[str] = typer.Option(None, help="Only list runs of this workflow"),
) -> None:
    """
    List workflow-instance runs with their current status.

    Example:
        cadenza instance list --workflow-id sample-wf
        # Output: sample-wf:1:1    RUNNING
    """
    repo = get_repository()
    instances = asyncio.run(repo.list_instances(workflow_id))
    if not instances:
        typer.echo("No instances found")
        return
    for instance in instances:
        typer.echo(f"{instance.identity}\t{instance.status.value}")


@instance_app.command("show")
def instance_show(workflow_id: str, instance_id: int, run_id: int) -> None:
    """Show one run and the termination requests recorded for it."""
    repo = get_repository()
    instance = asyncio.run(repo.get_instance_run(workflow_id, instance_id, run_id))
    if instance is None:
        typer.echo("Instance not found")
        raise typer.Exit(code=1)
    typer.echo(f"Instance {instance.identity}: {instance.status.value}")
    typer.echo(f"Uuid: {instance.workflow_uuid}")
    typer.echo(f"Execution: {instance.execution_id or '-'}")
    requests = asyncio.run(repo.list_termination_requests(workflow_id))
    for request in requests:
        if (
            request.workflow_instance_id == instance_id
            and request.workflow_run_id == run_id
        ):
            typer.echo(
                f"- {request.action.value} by {request.user} at "
                f"{request.requested_at.isoformat()}: {request.reason}"
            )


@instance_app.command("terminate-then-run")
def instance_terminate_then_run(
    workflow_id: str,
    run: Optional[List[str]] = typer.Option(
        None, "--run", help="Run to terminate as INSTANCE_ID:RUN_ID:UUID (repeatable)"
    ),
    run_after: Optional[str] = typer.Option(
        None, "--run-after", help="Run to start afterwards as INSTANCE_ID:RUN_ID:UUID"
    ),
    action: InstanceAction = typer.Option(InstanceAction.STOP, help="STOP or KILL"),
    user: str = typer.Option("cadenza-cli", help="User issuing the request"),
    reason: str = typer.Option("terminated from cli", help="Reason recorded with it"),
    process: bool = typer.Option(
        False, "--process", help="Process the job in this process instead of publishing it"
    ),
) -> None:
    """
    Terminate runs of a workflow, then start the run-after run.

    Example:
        cadenza instance terminate-then-run sample-wf --run 1:1:uuid1 --run-after 2:1:uuid2
        cadenza instance terminate-then-run sample-wf --run 1:1:uuid1 --process
    """
    builder = TerminateThenRunJobEvent.init(workflow_id, action, User.create(user), reason)
    for value in run or []:
        builder.add_one_run(_parse_run(value))
    if run_after:
        after = _parse_run(run_after)
        builder.add_run_after(after.instance_id, after.run_id, after.uuid)
    event = builder.build()

    config = load_config()
    transport = get_transport(config=config)
    if not process:
        publisher = JobEventPublisher(transport, config.jobs)
        try:
            message = asyncio.run(publisher.publish_or_raise(event))
        except CadenzaError as exc:
            typer.secho(exc.message, fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.echo(f"Job published: {message.message_id}")
        return

    coordinator = _build_coordinator(transport, get_repository(), config)
    result = asyncio.run(coordinator.process(event))
    typer.echo(f"{result.outcome.value}: {result.reason}" if result.reason else result.outcome.value)
    if result.is_internal:
        raise typer.Exit(code=1)


@instance_app.command("progress")
def instance_progress(
    workflow_id: str,
    instance_id: int,
    run_id: int,
    strict: bool = typer.Option(False, "--strict", help="Evaluate as the terminating caller"),
) -> None:
    """
    Evaluate whether a run reached a terminal status from its stored tasks.

    Requires ``task_database_url`` in the configuration or the
    ``CADENZA_TASK_DATABASE_URL`` environment variable.
    """
    config = load_config()
    if not config.task_database_url:
        typer.secho("No task database configured", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def _evaluate():
        task_db = TaskDB(config.task_database_url)
        try:
            await task_db.init_db()
            service = ProgressService(task_db, config.tasks)
            return await service.evaluate(workflow_id, instance_id, run_id, is_strict=strict)
        finally:
            await task_db.dispose()

    try:
        report = asyncio.run(_evaluate())
    except CadenzaError as exc:
        typer.secho(exc.message, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Status: {report.status.value if report.status else 'IN_PROGRESS'}")
    typer.echo(json.dumps(report.overview.model_dump(mode="json"), indent=2))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
