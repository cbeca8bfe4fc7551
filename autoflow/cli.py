"""Command line interface for autoflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from autoflow import WorkflowEngine
from autoflow.config import AutoflowConfig, load_config
from autoflow.contracts import WorkflowDefinition
from autoflow.delivery import HttpWebhookDelivery, LogNotificationSink
from autoflow.exceptions import WorkflowDefinitionError, WorkflowFileError
from autoflow.graph import validate_definition
from autoflow.persistence import get_repository
from autoflow.templates import get_template, list_templates
from autoflow.workflow_file import load_workflow_file, save_workflow_file

app = typer.Typer(help="CLI for autoflow workflow automation")

# Command groups
workflow_app = typer.Typer(help="Commands for workflow definition files")
template_app = typer.Typer(help="Commands for built-in workflow templates")
event_app = typer.Typer(help="Commands for dispatching events")
execution_app = typer.Typer(help="Commands for inspecting persisted executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(template_app, name="template")
app.add_typer(event_app, name="event")
app.add_typer(execution_app, name="execution")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to an autoflow YAML config file"
    ),
) -> None:
    """autoflow CLI entry point."""
    config = load_config(str(config_path) if config_path else None)
    logging.basicConfig(level=config.log_level.upper())
    ctx.obj = config


def _config(ctx: typer.Context) -> AutoflowConfig:
    return ctx.obj if isinstance(ctx.obj, AutoflowConfig) else load_config()


def _load_definitions(path: Path) -> list[WorkflowDefinition]:
    if not path.exists():
        typer.secho(f"Workflow file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        return load_workflow_file(path)
    except WorkflowFileError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@workflow_app.command("validate")
def workflow_validate(path: Path) -> None:
    """
    Check a workflow file for malformed definitions and dangling step references.

    Example:
        autoflow workflow validate ./workflows.yaml
        # Output: OK  Candidate onboarding (3 steps)
    """
    definitions = _load_definitions(path)
    failed = False
    for definition in definitions:
        errors = validate_definition(definition)
        if errors:
            failed = True
            typer.secho(f"INVALID  {definition.name}", fg=typer.colors.RED)
            for error in errors:
                typer.echo(f"  - {error}")
        else:
            typer.echo(f"OK  {definition.name} ({len(definition.steps)} steps)")
    if failed:
        raise typer.Exit(code=1)


@workflow_app.command("list")
def workflow_list(path: Path) -> None:
    """List the workflows defined in a file with their trigger and status."""
    definitions = _load_definitions(path)
    if not definitions:
        typer.echo("No workflows found")
        return
    for definition in definitions:
        status = "active" if definition.is_active else "inactive"
        typer.echo(
            f"{definition.name}\t{definition.trigger.event}\t"
            f"{len(definition.steps)} steps\t{status}"
        )


@template_app.command("list")
def template_list() -> None:
    """List built-in workflow templates."""
    for template_id, template in list_templates().items():
        typer.echo(f"{template_id}\t{template.name}\t{template.trigger.event}")


@template_app.command("export")
def template_export(template_id: str, path: Path) -> None:
    """Write a built-in template to a workflow file for editing."""
    template = get_template(template_id)
    if template is None:
        typer.secho(f"Unknown template: {template_id}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    save_workflow_file(path, [template])
    typer.echo(f"Exported {template_id} to {path}")


@event_app.command("dispatch")
def event_dispatch(
    ctx: typer.Context,
    event: str,
    path: Path = typer.Option(..., "--file", help="Workflow file to load"),
    data: Optional[str] = typer.Option(None, help="JSON object with event data"),
) -> None:
    """
    Register the workflows in a file and dispatch one event against them.

    Notifications are written to the log and webhooks are sent over HTTP.
    Action steps fail because no host actions are available from the CLI.

    Example:
        autoflow event dispatch candidate.created --file wf.yaml --data '{"firstName": "Ana"}'
    """
    try:
        payload = json.loads(data) if data else {}
    except ValueError as exc:
        typer.secho(f"Invalid --data JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not isinstance(payload, dict):
        typer.secho("--data must be a JSON object", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    definitions = _load_definitions(path)
    config = _config(ctx)

    async def run():
        engine = WorkflowEngine(
            webhook_delivery=HttpWebhookDelivery(timeout=config.webhook.timeout_seconds),
            notification_sink=LogNotificationSink(),
            repository=get_repository(config=config),
            config=config,
        )
        for definition in definitions:
            await engine.register_workflow(definition)
        return await engine.dispatch_event(event, payload)

    try:
        executions = asyncio.run(run())
    except WorkflowDefinitionError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if not executions:
        typer.echo(f"No workflows matched {event}")
        return
    for execution in executions:
        line = f"{execution.id}\t{execution.status.value}\t{len(execution.step_results)} steps"
        if execution.error:
            line += f"\t{execution.error}"
        typer.echo(line)


@execution_app.command("list")
def execution_list(ctx: typer.Context, workflow_id: Optional[str] = None) -> None:
    """List persisted executions from the configured repository."""
    repo = get_repository(config=_config(ctx))
    executions = asyncio.run(repo.list_executions(workflow_id))
    if not executions:
        typer.echo("No executions found")
        return
    for execution in executions:
        typer.echo(f"{execution.id}\t{execution.workflow_id}\t{execution.status.value}")


@execution_app.command("show")
def execution_show(ctx: typer.Context, execution_id: str) -> None:
    """
    Show one execution with its step-by-step history.

    Example:
        autoflow execution show exec_1a2b3c4d5e6f
        # Output: Execution exec_1a2b3c4d5e6f (wf_...): failed
        #         Error: Unknown action: sync_to_crm
        #         - step_1: success
        #         - step_2: failure (Unknown action: sync_to_crm)
    """
    repo = get_repository(config=_config(ctx))
    execution = asyncio.run(repo.get_execution(execution_id))
    if execution is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(f"Execution {execution.id} ({execution.workflow_id}): {execution.status.value}")
    if execution.error:
        typer.echo(f"Error: {execution.error}")
    for result in execution.step_results:
        typer.echo(
            f"- {result.step_id}: {result.status.value}"
            + (f" ({result.error})" if result.error else "")
        )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
