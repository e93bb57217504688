import asyncio

import pytest

from conftest import FakeProvider, RecordingBus
from forgeflow.error_handling import StepExecutionError, WorkflowConfigurationError
from forgeflow.models import ExecutionContext, WorkflowStep
from forgeflow.scheduler import DependencyScheduler
from forgeflow.step_executor import StepExecutor


def make_scheduler(provider, bus=None):
    return DependencyScheduler(StepExecutor(provider, bus, retry_base_delay=0))


def steps(*specs):
    return [
        WorkflowStep(id=step_id, name=step_id, type="generate", prompt=step_id, dependencies=list(deps), retries=1)
        for step_id, deps in specs
    ]


@pytest.mark.asyncio
async def test_independent_steps_share_a_round():
    in_flight = []
    peak = []

    async def responder(prompt, options, call_number):
        in_flight.append(prompt)
        peak.append(len(in_flight))
        await asyncio.sleep(0.01)
        in_flight.remove(prompt)
        return prompt.upper()

    outcome = await make_scheduler(FakeProvider(responder)).run(
        steps(("a", []), ("b", []), ("c", ["a", "b"])), ExecutionContext(), asyncio.Event()
    )

    assert outcome.rounds == 2
    assert max(peak) == 2
    assert outcome.executed == ["a", "b", "c"]
    assert outcome.outputs == {"a": "A", "b": "B", "c": "C"}


@pytest.mark.asyncio
async def test_failed_round_settles_siblings_and_stops():
    def responder(prompt, options, call_number):
        if prompt == "bad":
            raise RuntimeError("boom")
        return "ok"

    provider = FakeProvider(responder)
    context = ExecutionContext()
    outcome = await make_scheduler(provider).run(
        steps(("good", []), ("bad", []), ("after", ["good"])), context, asyncio.Event()
    )

    assert outcome.rounds == 1
    assert context.outputs == {"good": "ok"}
    assert [item.step for item in outcome.errors] == ["bad"]
    assert isinstance(outcome.errors[0].error, StepExecutionError)
    assert provider.prompts_containing("after") == []
    assert outcome.cancelled is False


@pytest.mark.asyncio
async def test_every_failure_in_a_round_is_collected():
    def responder(prompt, options, call_number):
        raise RuntimeError(f"{prompt} broke")

    outcome = await make_scheduler(FakeProvider(responder)).run(
        steps(("a", []), ("b", []), ("c", []), ("d", ["a"])), ExecutionContext(), asyncio.Event()
    )

    assert outcome.rounds == 1
    assert [item.step for item in outcome.errors] == ["a", "b", "c"]
    assert [str(item.error.last_error) for item in outcome.errors] == ["a broke", "b broke", "c broke"]
    assert outcome.executed == []


@pytest.mark.asyncio
async def test_unresolvable_dependencies_raise():
    with pytest.raises(WorkflowConfigurationError):
        await make_scheduler(FakeProvider()).run(
            steps(("a", ["missing"])), ExecutionContext(), asyncio.Event()
        )


@pytest.mark.asyncio
async def test_preset_cancel_runs_nothing():
    cancel = asyncio.Event()
    cancel.set()
    provider = FakeProvider()

    outcome = await make_scheduler(provider).run(steps(("a", [])), ExecutionContext(), cancel)

    assert outcome.cancelled is True
    assert outcome.rounds == 0
    assert provider.calls == []


@pytest.mark.asyncio
async def test_on_step_done_reports_executed_and_skipped():
    done = []
    bus = RecordingBus()
    plan = [
        WorkflowStep(id="a", name="a", type="generate", prompt="a"),
        WorkflowStep(id="b", name="b", type="generate", prompt="b", condition="input.enabled"),
    ]

    outcome = await make_scheduler(FakeProvider("x"), bus).run(
        plan, ExecutionContext(input={"enabled": False}), asyncio.Event(), execution_id="e1", on_step_done=done.append
    )

    assert done == ["a", "b"]
    assert outcome.skipped == ["b"]
    assert [artifact.type for artifact in outcome.artifacts] == ["generate"]
    assert ("step:skipped", {"workflowId": "e1", "step": "b"}) in bus.events
