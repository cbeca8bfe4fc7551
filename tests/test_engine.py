import asyncio

import pytest

from autoflow import (
    ExecutionStatus,
    StepStatus,
    VirtualClock,
    WorkflowDefinitionError,
    WorkflowEngine,
)
from autoflow.events import (
    EXECUTION_CANCELLED,
    EXECUTION_COMPLETED,
    EXECUTION_CREATED,
    EXECUTION_STARTED,
    STEP_COMPLETED,
    STEP_STARTED,
    WORKFLOW_REGISTERED,
)


def _workflow(steps, event="candidate.created", conditions=None, **extra):
    return {
        "name": extra.pop("name", "Test workflow"),
        "trigger": {"event": event, "conditions": conditions or []},
        "steps": steps,
        **extra,
    }


@pytest.mark.asyncio
async def test_dispatch_event_notification_end_to_end(make_engine, sink):
    engine = make_engine()
    await engine.register_workflow(
        _workflow(
            [{"id": "s1", "type": "notification", "config": {"message": "New: {{firstName}}"}}]
        )
    )

    executions = await engine.dispatch_event("candidate.created", {"firstName": "Ana"})

    assert len(executions) == 1
    execution = executions[0]
    assert execution.status is ExecutionStatus.COMPLETED
    assert len(execution.step_results) == 1
    assert execution.step_results[0].output["message"] == "New: Ana"
    assert sink.messages == ["New: Ana"]


@pytest.mark.asyncio
async def test_empty_conditions_match_every_active_workflow_for_event(make_engine):
    engine = make_engine()
    first = await engine.register_workflow(_workflow([], name="first"))
    second = await engine.register_workflow(_workflow([], name="second"))
    await engine.register_workflow(_workflow([], name="paused", isActive=False))
    await engine.register_workflow(_workflow([], name="other", event="company.created"))

    executions = await engine.dispatch_event("candidate.created", {})

    assert {e.workflow_id for e in executions} == {first, second}
    assert all(e.status is ExecutionStatus.COMPLETED for e in executions)
    assert all(e.step_results == [] for e in executions)


@pytest.mark.asyncio
async def test_trigger_conditions_filter_dispatch(make_engine):
    engine = make_engine()
    await engine.register_workflow(
        _workflow([], conditions=[{"field": "source", "operator": "eq", "value": "referral"}])
    )
    assert await engine.dispatch_event("candidate.created", {"source": "job-board"}) == []
    assert await engine.dispatch_event("candidate.created", {}) == []
    assert len(await engine.dispatch_event("candidate.created", {"source": "referral"})) == 1


@pytest.mark.asyncio
async def test_linear_workflow_runs_every_step(make_engine, sink, action_calls):
    clock = VirtualClock(auto_advance=True)
    engine = make_engine(clock=clock)
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {
                    "id": "a",
                    "type": "action",
                    "config": {"action": "record", "params": {"email": "{{email}}"}},
                    "nextStepId": "b",
                },
                {"id": "b", "type": "delay", "config": {"delayMs": 60000}, "nextStepId": "c"},
                {
                    "id": "c",
                    "type": "notification",
                    "config": {"message": "Recorded {{steps.a.recorded.email}}"},
                },
            ]
        )
    )
    start = clock.now()

    execution = await engine.trigger_workflow(workflow_id, {"email": "ana@example.com"})

    assert execution.status is ExecutionStatus.COMPLETED
    assert [r.step_id for r in execution.step_results] == ["a", "b", "c"]
    assert all(r.status is StepStatus.SUCCESS for r in execution.step_results)
    assert action_calls == [{"email": "ana@example.com"}]
    assert sink.messages == ["Recorded ana@example.com"]
    assert (execution.completed_at - start).total_seconds() == 60
    assert execution.current_step_id is None


@pytest.mark.asyncio
async def test_failed_step_routes_to_error_step(make_engine, sink):
    engine = make_engine()
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {
                    "id": "step_1",
                    "type": "action",
                    "config": {"action": "explode"},
                    "nextStepId": "never",
                    "onErrorStepId": "step_2",
                },
                {"id": "step_2", "type": "notification", "config": {"message": "sync failed"}},
                {"id": "never", "type": "notification", "config": {"message": "unreachable"}},
            ]
        )
    )

    execution = await engine.trigger_workflow(workflow_id)

    assert [r.step_id for r in execution.step_results] == ["step_1", "step_2"]
    assert execution.step_results[0].status is StepStatus.FAILURE
    assert execution.step_results[0].error == "crm unavailable"
    assert execution.step_results[1].status is StepStatus.SUCCESS
    assert execution.status is ExecutionStatus.COMPLETED
    assert execution.error is None
    assert sink.messages == ["sync failed"]


@pytest.mark.asyncio
async def test_failure_without_error_step_fails_execution(make_engine):
    engine = make_engine()
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "s1", "type": "action", "config": {"action": "sync_to_crm"}, "nextStepId": "s2"},
                {"id": "s2", "type": "notification", "config": {"message": "done"}},
            ]
        )
    )

    execution = await engine.trigger_workflow(workflow_id)

    assert execution.status is ExecutionStatus.FAILED
    assert execution.error == "Unknown action: sync_to_crm"
    assert [r.step_id for r in execution.step_results] == ["s1"]


@pytest.mark.asyncio
async def test_step_cycle_hits_step_limit(make_engine):
    engine = make_engine(max_steps=10)
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "A", "type": "action", "config": {"action": "record"}, "nextStepId": "B"},
                {"id": "B", "type": "action", "config": {"action": "record"}, "nextStepId": "A"},
            ]
        )
    )

    execution = await engine.trigger_workflow(workflow_id)

    assert execution.status is ExecutionStatus.FAILED
    assert execution.error == "step limit exceeded"
    assert len(execution.step_results) == 10


@pytest.mark.asyncio
async def test_false_condition_completes_without_error_branch(make_engine, sink):
    engine = make_engine()
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {
                    "id": "check",
                    "type": "condition",
                    "config": {"condition": 'contact.status === "active"'},
                    "nextStepId": "notify",
                },
                {"id": "notify", "type": "notification", "config": {"message": "active!"}},
            ]
        )
    )

    execution = await engine.trigger_workflow(workflow_id, {"contact": {"status": "lead"}})

    assert execution.status is ExecutionStatus.COMPLETED
    assert [r.status for r in execution.step_results] == [StepStatus.SKIPPED]
    assert sink.messages == []


@pytest.mark.asyncio
async def test_false_condition_follows_error_branch(make_engine, sink):
    engine = make_engine()
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {
                    "id": "check",
                    "type": "condition",
                    "config": {"conditions": [{"field": "score", "operator": "gte", "value": 50}]},
                    "nextStepId": "hot",
                    "onErrorStepId": "cold",
                },
                {"id": "hot", "type": "notification", "config": {"message": "hot lead"}},
                {"id": "cold", "type": "notification", "config": {"message": "cold lead"}},
            ]
        )
    )

    cold = await engine.trigger_workflow(workflow_id, {"score": 10})
    hot = await engine.trigger_workflow(workflow_id, {"score": 90})

    assert [r.step_id for r in cold.step_results] == ["check", "cold"]
    assert cold.step_results[0].output == {"result": False}
    assert [r.step_id for r in hot.step_results] == ["check", "hot"]
    assert cold.status is hot.status is ExecutionStatus.COMPLETED
    assert sink.messages == ["cold lead", "hot lead"]


@pytest.mark.asyncio
async def test_webhook_step_receives_context(make_engine, webhook):
    engine = make_engine()
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "s1", "type": "action", "config": {"action": "record"}, "nextStepId": "s2"},
                {"id": "s2", "type": "webhook", "config": {"url": "https://hooks.example.com"}},
            ]
        )
    )

    execution = await engine.trigger_workflow(workflow_id, {"id": 42})

    assert execution.status is ExecutionStatus.COMPLETED
    url, payload = webhook.calls[0]
    assert url == "https://hooks.example.com"
    assert payload["id"] == 42
    assert payload["steps"]["s1"] == {"recorded": {}}
    assert execution.step_results[1].output["statusCode"] == 200


@pytest.mark.asyncio
async def test_failed_webhook_fails_execution(make_engine, webhook):
    webhook.status_code = 502
    engine = make_engine()
    workflow_id = await engine.register_workflow(
        _workflow([{"id": "s1", "type": "webhook", "config": {"url": "https://hooks.example.com"}}])
    )

    execution = await engine.trigger_workflow(workflow_id)

    assert execution.status is ExecutionStatus.FAILED
    assert "HTTP 502" in execution.error


@pytest.mark.asyncio
async def test_cancel_during_delay(make_engine, sink):
    clock = VirtualClock()
    engine = make_engine(clock=clock)
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "wait", "type": "delay", "config": {"delayMs": 3_600_000}, "nextStepId": "n"},
                {"id": "n", "type": "notification", "config": {"message": "late"}},
            ]
        )
    )

    execution = await engine.start_workflow(workflow_id)
    assert execution.status is ExecutionStatus.PENDING
    await clock.wait_for_timers(1)
    assert engine.get_execution(execution.id).status is ExecutionStatus.RUNNING
    assert engine.get_execution(execution.id).current_step_id == "wait"

    assert engine.cancel_execution(execution.id) is True
    finished = await engine.wait_for_execution(execution.id)

    assert finished.status is ExecutionStatus.CANCELLED
    assert finished.step_results == []
    assert finished.error is None
    assert sink.messages == []
    assert engine.cancel_execution(execution.id) is False


@pytest.mark.asyncio
async def test_delay_suspends_until_clock_advances(make_engine, sink):
    clock = VirtualClock()
    engine = make_engine(clock=clock)
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "wait", "type": "delay", "config": {"delayMs": 1000}, "nextStepId": "n"},
                {"id": "n", "type": "notification", "config": {"message": "after delay"}},
            ]
        )
    )

    execution = await engine.start_workflow(workflow_id)
    await clock.wait_for_timers(1)
    await clock.advance(0.5)
    assert sink.messages == []

    await clock.advance(0.5)
    finished = await engine.wait_for_execution(execution.id)
    assert finished.status is ExecutionStatus.COMPLETED
    assert sink.messages == ["after delay"]


@pytest.mark.asyncio
async def test_cancel_before_start_and_unknown_ids(make_engine):
    engine = make_engine()
    workflow_id = await engine.register_workflow(_workflow([]))

    execution = await engine.start_workflow(workflow_id)
    assert engine.cancel_execution(execution.id, reason="changed my mind")
    finished = await engine.wait_for_execution(execution.id)

    assert finished.status is ExecutionStatus.CANCELLED
    assert finished.started_at is None
    assert engine.cancel_execution("exec_missing") is False


@pytest.mark.asyncio
async def test_missing_or_inactive_workflows_are_not_triggered(make_engine):
    engine = make_engine()
    paused = await engine.register_workflow(_workflow([], isActive=False))

    assert await engine.trigger_workflow("wf_missing") is None
    assert await engine.trigger_workflow(paused) is None
    assert engine.list_executions() == []


@pytest.mark.asyncio
async def test_manual_trigger_ignores_trigger_conditions(make_engine):
    engine = make_engine()
    workflow_id = await engine.register_workflow(
        _workflow([], conditions=[{"field": "source", "value": "referral"}])
    )
    execution = await engine.trigger_workflow(workflow_id, {"source": "other"})
    assert execution.status is ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_trigger_data_is_snapshotted(make_engine):
    engine = make_engine()
    workflow_id = await engine.register_workflow(_workflow([]))
    data = {"candidate": {"name": "Ana"}}

    execution = await engine.start_workflow(workflow_id, data)
    data["candidate"]["name"] = "Changed"
    finished = await engine.wait_for_execution(execution.id)

    assert finished.trigger_data == {"candidate": {"name": "Ana"}}


@pytest.mark.asyncio
async def test_register_rejects_dangling_successor(make_engine):
    engine = make_engine()
    with pytest.raises(WorkflowDefinitionError, match="missing"):
        await engine.register_workflow(
            _workflow([{"id": "s1", "type": "delay", "nextStepId": "missing"}])
        )
    assert engine.list_workflows() == []


@pytest.mark.asyncio
async def test_update_does_not_affect_running_execution(make_engine, sink):
    clock = VirtualClock()
    engine = make_engine(clock=clock)
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "wait", "type": "delay", "config": {"delayMs": 1000}, "nextStepId": "n"},
                {"id": "n", "type": "notification", "config": {"message": "v1"}},
            ]
        )
    )
    execution = await engine.start_workflow(workflow_id)
    await clock.wait_for_timers(1)

    updated = await engine.update_workflow(
        workflow_id,
        _workflow([{"id": "n", "type": "notification", "config": {"message": "v2"}}]),
    )
    assert updated.id == workflow_id
    await clock.advance(1)
    await engine.wait_for_execution(execution.id)
    await engine.trigger_workflow(workflow_id)

    assert sink.messages == ["v1", "v2"]
    assert await engine.update_workflow("wf_missing", _workflow([])) is None


@pytest.mark.asyncio
async def test_unregister_keeps_execution_history(make_engine):
    engine = make_engine()
    workflow_id = await engine.register_workflow(_workflow([]))
    execution = await engine.trigger_workflow(workflow_id)

    assert await engine.unregister_workflow(workflow_id) is True
    assert await engine.unregister_workflow(workflow_id) is False
    assert engine.get_workflow(workflow_id) is None
    assert engine.get_execution(execution.id) is execution
    assert engine.list_executions(workflow_id) == [execution]


@pytest.mark.asyncio
async def test_concurrent_executions_are_isolated(make_engine):
    clock = VirtualClock()
    engine = make_engine(clock=clock)
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "wait", "type": "delay", "config": {"delayMs": 1000}, "nextStepId": "n"},
                {"id": "n", "type": "notification", "config": {"message": "hi {{name}}"}},
            ]
        )
    )

    first = await engine.start_workflow(workflow_id, {"name": "Ana"})
    second = await engine.start_workflow(workflow_id, {"name": "Bo"})
    await clock.wait_for_timers(2)
    engine.cancel_execution(first.id)
    await clock.advance(1)
    results = await asyncio.gather(
        engine.wait_for_execution(first.id), engine.wait_for_execution(second.id)
    )

    assert results[0].status is ExecutionStatus.CANCELLED
    assert results[1].status is ExecutionStatus.COMPLETED
    assert results[1].step_results[-1].output["message"] == "hi Bo"


@pytest.mark.asyncio
async def test_lifecycle_events_are_emitted(make_engine):
    engine = make_engine()
    events = []
    unsubscribe = engine.subscribe(lambda event: events.append(event))

    workflow_id = await engine.register_workflow(
        _workflow([{"id": "s1", "type": "notification", "config": {"message": "hi"}}])
    )
    execution = await engine.trigger_workflow(workflow_id)

    assert [e.type for e in events] == [
        WORKFLOW_REGISTERED,
        EXECUTION_CREATED,
        EXECUTION_STARTED,
        STEP_STARTED,
        STEP_COMPLETED,
        EXECUTION_COMPLETED,
    ]
    assert events[-1].execution_id == execution.id
    assert events[4].data.step_id == "s1"

    unsubscribe()
    await engine.trigger_workflow(workflow_id)
    assert len(events) == 6


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_execution(make_engine):
    engine = make_engine()

    async def broken(event):
        raise RuntimeError("listener bug")

    cancelled = []
    engine.subscribe(broken)
    engine.subscribe(lambda e: cancelled.append(e) if e.type == EXECUTION_CANCELLED else None)

    workflow_id = await engine.register_workflow(_workflow([]))
    execution = await engine.trigger_workflow(workflow_id)
    assert execution.status is ExecutionStatus.COMPLETED
    assert cancelled == []


@pytest.mark.asyncio
async def test_register_template(make_engine):
    engine = make_engine()
    workflow_id = await engine.register_template("template_candidate_notification")
    assert engine.get_workflow(workflow_id).trigger.event == "candidate.created"
    with pytest.raises(ValueError, match="Unknown workflow template"):
        await engine.register_template("template_missing")


@pytest.mark.asyncio
async def test_cancel_mid_step_records_step_and_stops(sink):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_sync(params, context):
        entered.set()
        await release.wait()
        return {"synced": True}

    engine = WorkflowEngine(
        actions={"slow_sync": slow_sync},
        notification_sink=sink,
        clock=VirtualClock(auto_advance=True),
    )
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "a", "type": "action", "config": {"action": "slow_sync"}, "nextStepId": "b"},
                {"id": "b", "type": "notification", "config": {"message": "should not run"}},
            ]
        )
    )

    execution = await engine.start_workflow(workflow_id)
    await entered.wait()
    assert engine.cancel_execution(execution.id) is True
    release.set()
    finished = await engine.wait_for_execution(execution.id)

    assert finished.status is ExecutionStatus.CANCELLED
    assert [r.step_id for r in finished.step_results] == ["a"]
    assert finished.step_results[0].status is StepStatus.SUCCESS
    assert finished.step_results[0].output == {"synced": True}
    assert sink.messages == []


@pytest.mark.asyncio
async def test_handlers_cannot_modify_trigger_snapshot():
    def tamper(params, context):
        context.trigger_data["candidate"]["name"] = "Changed"
        return None

    engine = WorkflowEngine(actions={"tamper": tamper}, clock=VirtualClock(auto_advance=True))
    workflow_id = await engine.register_workflow(
        _workflow([{"id": "a", "type": "action", "config": {"action": "tamper"}}])
    )

    execution = await engine.trigger_workflow(workflow_id, {"candidate": {"name": "Ana"}})

    assert execution.status is ExecutionStatus.COMPLETED
    assert execution.trigger_data == {"candidate": {"name": "Ana"}}


@pytest.mark.asyncio
async def test_handlers_cannot_modify_recorded_step_outputs():
    produced = {}

    def produce(params, context):
        produced["value"] = 1
        return produced

    def tamper(params, context):
        context.step_outputs["a"]["value"] = 999
        produced["value"] = 2
        return None

    engine = WorkflowEngine(
        actions={"produce": produce, "tamper": tamper},
        clock=VirtualClock(auto_advance=True),
    )
    workflow_id = await engine.register_workflow(
        _workflow(
            [
                {"id": "a", "type": "action", "config": {"action": "produce"}, "nextStepId": "b"},
                {"id": "b", "type": "action", "config": {"action": "tamper"}},
            ]
        )
    )

    execution = await engine.trigger_workflow(workflow_id)

    assert execution.status is ExecutionStatus.COMPLETED
    assert execution.step_results[0].output == {"value": 1}
