"""Example wiring host actions, a condition branch and a delay.

Actions are plain callables supplied by the host application. The
condition step sends hot leads to the CRM and cold leads to a nurture
notification.
"""

import asyncio
import logging

from autoflow import WorkflowEngine
from autoflow.delivery import CollectingNotificationSink

logging.basicConfig(level=logging.INFO)


async def assign_owner(params, context):
    """Pretend to assign a sales owner and return who got it."""
    await asyncio.sleep(0)
    return {"owner": "sam@example.com", "lead": params["email"]}


def sync_to_crm(params, context):
    print(f"🔄 Syncing {params['email']} (score {params['score']}) to CRM")
    return {"synced": True}


LEAD_WORKFLOW = {
    "name": "Lead routing",
    "description": "Route incoming leads by score",
    "trigger": {"event": "lead.created"},
    "steps": [
        {
            "id": "score_check",
            "type": "condition",
            "config": {"condition": "lead.score >= 70"},
            "nextStepId": "assign",
            "onErrorStepId": "nurture",
        },
        {
            "id": "assign",
            "type": "action",
            "config": {"action": "assign_owner", "params": {"email": "{{lead.email}}"}},
            "nextStepId": "sync",
        },
        {
            "id": "sync",
            "type": "action",
            "config": {
                "action": "sync_to_crm",
                "params": {"email": "{{lead.email}}", "score": "{{lead.score}}"},
                "retries": 2,
                "retryDelayMs": 500,
            },
        },
        {
            "id": "nurture",
            "type": "delay",
            "config": {"delayMs": 200},
            "nextStepId": "nurture_mail",
        },
        {
            "id": "nurture_mail",
            "type": "notification",
            "config": {"message": "Add {{lead.email}} to the nurture campaign"},
        },
    ],
}


async def main():
    sink = CollectingNotificationSink()
    engine = WorkflowEngine(
        actions={"assign_owner": assign_owner, "sync_to_crm": sync_to_crm},
        notification_sink=sink,
    )
    engine.subscribe(lambda event: print(f"📣 {event.type} {event.execution_id or ''}"))
    workflow_id = await engine.register_workflow(LEAD_WORKFLOW)

    hot = await engine.trigger_workflow(
        workflow_id, {"lead": {"email": "hot@example.com", "score": 91}}
    )
    cold = await engine.trigger_workflow(
        workflow_id, {"lead": {"email": "cold@example.com", "score": 12}}
    )

    print(f"Hot lead path: {[r.step_id for r in hot.step_results]} -> {hot.status.value}")
    print(f"Cold lead path: {[r.step_id for r in cold.step_results]} -> {cold.status.value}")
    print(f"Notifications: {sink.messages}")


if __name__ == "__main__":
    asyncio.run(main())
