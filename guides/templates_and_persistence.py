"""Register built-in templates with SQLite persistence and reload them."""

import asyncio
import tempfile
from pathlib import Path

from autoflow import LogNotificationSink, WorkflowEngine, get_repository
from autoflow.templates import list_templates
from autoflow.workflow_file import save_workflow_file


async def main():
    workdir = Path(tempfile.mkdtemp())
    database_url = f"sqlite://{workdir / 'autoflow.db'}"

    engine = WorkflowEngine(
        notification_sink=LogNotificationSink(),
        repository=get_repository(database_url),
    )
    await engine.register_template("template_candidate_notification")
    await engine.dispatch_event("candidate.created", {"candidate": {"name": "Ana"}})

    # A second engine on the same database sees the same workflows and history
    restarted = WorkflowEngine(
        notification_sink=LogNotificationSink(),
        repository=get_repository(database_url),
    )
    await restarted.load()
    for workflow in restarted.list_workflows():
        print(f"📋 {workflow.id} {workflow.name}")
    for execution in restarted.list_executions():
        print(f"✅ {execution.id} {execution.status.value}")

    export_path = workdir / "templates.yaml"
    save_workflow_file(export_path, list_templates().values())
    print(f"💾 Templates exported to {export_path}")


if __name__ == "__main__":
    asyncio.run(main())
