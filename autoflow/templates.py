"""Built-in workflow templates."""

from __future__ import annotations

from typing import Dict, Optional

from .contracts import WorkflowDefinition

CANDIDATE_NOTIFICATION = "template_candidate_notification"
OPPORTUNITY_FOLLOW_UP = "template_opportunity_followup"
WEBHOOK_INTEGRATION = "template_webhook_integration"
CONDITION_BASED = "template_condition_based"

_TEMPLATES: Dict[str, WorkflowDefinition] = {
    CANDIDATE_NOTIFICATION: WorkflowDefinition.model_validate(
        {
            "name": "Candidate Creation Notification",
            "description": "Send notification when a new candidate is created",
            "trigger": {"event": "candidate.created", "conditions": []},
            "steps": [
                {
                    "id": "step_1",
                    "type": "notification",
                    "name": "Send Notification",
                    "config": {"message": "New candidate created: {{candidate.name}}"},
                }
            ],
        }
    ),
    OPPORTUNITY_FOLLOW_UP: WorkflowDefinition.model_validate(
        {
            "name": "Opportunity Follow-up",
            "description": "Delay and send follow-up for opportunity updates",
            "trigger": {"event": "opportunity.updated", "conditions": []},
            "steps": [
                {
                    "id": "step_1",
                    "type": "delay",
                    "name": "Wait 1 hour",
                    "config": {"delayMs": 3_600_000},
                    "nextStepId": "step_2",
                },
                {
                    "id": "step_2",
                    "type": "notification",
                    "name": "Send Follow-up",
                    "config": {"message": "Follow-up on opportunity: {{opportunity.title}}"},
                },
            ],
        }
    ),
    WEBHOOK_INTEGRATION: WorkflowDefinition.model_validate(
        {
            "name": "External Webhook Integration",
            "description": "Call external webhook when company is created",
            "trigger": {"event": "company.created", "conditions": []},
            "steps": [
                {
                    "id": "step_1",
                    "type": "webhook",
                    "name": "Call External API",
                    "config": {"url": "https://example.com/webhook"},
                }
            ],
        }
    ),
    CONDITION_BASED: WorkflowDefinition.model_validate(
        {
            "name": "Condition-Based Workflow",
            "description": "Conditionally execute actions based on data",
            "trigger": {"event": "contact.updated", "conditions": []},
            "steps": [
                {
                    "id": "step_1",
                    "type": "condition",
                    "name": "Check Contact Status",
                    "config": {"condition": 'contact.status === "active"'},
                    "nextStepId": "step_2",
                },
                {
                    "id": "step_2",
                    "type": "action",
                    "name": "Update CRM",
                    "config": {"action": "sync_to_crm"},
                },
            ],
        }
    ),
}


def get_template(template_id: str) -> Optional[WorkflowDefinition]:
    template = _TEMPLATES.get(template_id)
    return template.model_copy(deep=True) if template else None


def list_templates() -> dict[str, WorkflowDefinition]:
    """Return a copy of every template keyed by template id."""
    return {tid: t.model_copy(deep=True) for tid, t in _TEMPLATES.items()}
