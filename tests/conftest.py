import pytest

from autoflow import AutoflowConfig, VirtualClock, WorkflowEngine
from autoflow.delivery import CollectingNotificationSink, DeliveryResult


class RecordingWebhook:
    """Webhook delivery double returning a fixed status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.calls = []

    async def __call__(self, url, payload):
        self.calls.append((url, payload))
        return DeliveryResult(status_code=self.status_code, body={"ok": True})


@pytest.fixture
def sink():
    return CollectingNotificationSink()


@pytest.fixture
def webhook():
    return RecordingWebhook()


@pytest.fixture
def action_calls():
    return []


@pytest.fixture
def actions(action_calls):
    def record(params, context):
        action_calls.append(params)
        return {"recorded": params}

    def explode(params, context):
        raise RuntimeError("crm unavailable")

    return {"record": record, "explode": explode}


@pytest.fixture
def make_engine(sink, webhook, actions):
    def factory(clock=None, max_steps=1000, **kwargs):
        config = AutoflowConfig()
        config.engine.max_steps = max_steps
        return WorkflowEngine(
            actions=actions,
            webhook_delivery=webhook,
            notification_sink=sink,
            clock=clock or VirtualClock(auto_advance=True),
            config=config,
            **kwargs,
        )

    return factory
