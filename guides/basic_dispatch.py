"""Simple example showing event dispatch against a registered workflow."""

import asyncio

from autoflow import LogNotificationSink, WorkflowEngine


async def main():
    """Basic event dispatch example."""
    engine = WorkflowEngine(notification_sink=LogNotificationSink())

    workflow_id = await engine.register_workflow(
        {
            "name": "Referral alert",
            "trigger": {
                "event": "candidate.created",
                "conditions": [{"field": "source", "operator": "eq", "value": "referral"}],
            },
            "steps": [
                {
                    "id": "notify",
                    "type": "notification",
                    "config": {"message": "New referral: {{firstName}} {{lastName}}"},
                }
            ],
        }
    )

    executions = await engine.dispatch_event(
        "candidate.created",
        {"firstName": "Ana", "lastName": "Lopez", "source": "referral"},
    )

    print(f"✅ Workflow {workflow_id} registered")
    for execution in executions:
        print(f"📋 Execution {execution.id}: {execution.status.value}")
        for result in execution.step_results:
            print(f"   - {result.step_id}: {result.status.value} {result.output}")


if __name__ == "__main__":
    asyncio.run(main())
