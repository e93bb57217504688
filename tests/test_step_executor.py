import asyncio
import time

import pytest

from conftest import FakeProvider, RecordingBus
from forgeflow.error_handling import (
    JsonExtractionError,
    OutputSchemaError,
    StepCancelledError,
    StepExecutionError,
)
from forgeflow.models import ExecutionContext, WorkflowStep
from forgeflow.step_executor import StepExecutor, validate_output_schema


def step(**overrides):
    fields = {"id": "s", "name": "Step", "type": "generate", "prompt": "Hello {{input.who}}"}
    fields.update(overrides)
    return WorkflowStep(**fields)


@pytest.mark.asyncio
async def test_generate_interpolates_and_passes_timeout():
    provider = FakeProvider("hi")
    executor = StepExecutor(provider, retry_base_delay=0)

    outcome = await executor.execute(step(timeout_ms=1234), ExecutionContext(input={"who": "Ada"}), asyncio.Event())

    assert outcome.output == "hi"
    assert outcome.attempts == 1
    assert provider.calls == [{"prompt": "Hello Ada", "options": {"timeout_ms": 1234}}]


@pytest.mark.asyncio
async def test_validate_wraps_prompt_and_parses_json():
    provider = FakeProvider('Result:\n{"valid": false, "errors": ["x"]}\nDone')
    executor = StepExecutor(provider, retry_base_delay=0)
    context = ExecutionContext(input={"who": "Ada"}, outputs={"gen": "code"})

    outcome = await executor.execute(step(type="validate"), context, asyncio.Event())

    assert outcome.output == {"valid": False, "errors": ["x"]}
    prompt = provider.calls[0]["prompt"]
    assert prompt.startswith("\nHello Ada")
    assert '"valid": true/false' in prompt
    assert '"gen": "code"' in prompt


@pytest.mark.asyncio
@pytest.mark.parametrize("step_type, marker", [
    ("optimize", "Please optimize the output for"),
    ("review", "Please provide a comprehensive review"),
    ("analyze", "Provide detailed analysis"),
])
async def test_typed_steps_append_outputs_and_instructions(step_type, marker):
    provider = FakeProvider("text")
    executor = StepExecutor(provider, retry_base_delay=0)

    await executor.execute(step(type=step_type), ExecutionContext(outputs={"prev": 1}), asyncio.Event())

    prompt = provider.calls[0]["prompt"]
    assert marker in prompt
    assert '"prev": 1' in prompt
    assert provider.calls[0]["options"] is None


@pytest.mark.asyncio
async def test_transform_sends_prompt_untouched():
    provider = FakeProvider("text")
    await StepExecutor(provider, retry_base_delay=0).execute(
        step(type="transform", prompt="exact"), ExecutionContext(), asyncio.Event()
    )
    assert provider.calls[0]["prompt"] == "exact"


@pytest.mark.asyncio
async def test_validate_without_json_is_retried():
    provider = FakeProvider("looks fine to me")
    executor = StepExecutor(provider, retry_base_delay=0)

    with pytest.raises(StepExecutionError) as excinfo:
        await executor.execute(step(type="validate", retries=2), ExecutionContext(), asyncio.Event())

    assert excinfo.value.attempts == 2
    assert isinstance(excinfo.value.last_error, JsonExtractionError)


@pytest.mark.asyncio
async def test_zero_retries_fails_without_an_attempt():
    provider = FakeProvider("never used")
    bus = RecordingBus()

    with pytest.raises(StepExecutionError) as excinfo:
        await StepExecutor(provider, bus, retry_base_delay=0).execute(step(retries=0), ExecutionContext(), asyncio.Event())

    assert provider.calls == []
    assert excinfo.value.attempts == 0
    assert excinfo.value.last_error is None
    assert bus.names() == ["step:start", "step:error"]


@pytest.mark.asyncio
async def test_linear_backoff_between_attempts():
    def responder(prompt, options, call_number):
        if call_number < 3:
            raise RuntimeError("again")
        return "ok"

    bus = RecordingBus()
    executor = StepExecutor(FakeProvider(responder), bus, retry_base_delay=0.05)
    started = time.monotonic()
    outcome = await executor.execute(step(retries=3), ExecutionContext(), asyncio.Event())

    # 0.05 before attempt 2, 0.10 before attempt 3
    assert time.monotonic() - started >= 0.15
    assert outcome.attempts == 3
    assert bus.names().count("step:retry") == 2


@pytest.mark.asyncio
async def test_cancel_event_stops_before_first_attempt():
    provider = FakeProvider("x")
    cancel = asyncio.Event()
    cancel.set()
    bus = RecordingBus()

    with pytest.raises(StepCancelledError):
        await StepExecutor(provider, bus, retry_base_delay=0).execute(step(), ExecutionContext(), cancel)

    assert provider.calls == []
    assert bus.names() == ["step:start", "step:error"]


@pytest.mark.asyncio
async def test_cancel_during_backoff_aborts_retries():
    cancel = asyncio.Event()

    def responder(prompt, options, call_number):
        cancel.set()
        raise RuntimeError("fail once")

    provider = FakeProvider(responder)
    with pytest.raises(StepCancelledError):
        await StepExecutor(provider, retry_base_delay=5).execute(step(retries=3), ExecutionContext(), cancel)

    assert len(provider.calls) == 1


def test_output_schema_parses_string_output():
    schema = {"type": "object", "properties": {"n": {"type": "integer"}}, "required": ["n"]}
    assert validate_output_schema(step(output_schema=schema), '{"n": 3}') == {"n": 3}

    with pytest.raises(OutputSchemaError):
        validate_output_schema(step(output_schema=schema), {"n": "three"})


def test_invalid_output_schema_type_is_rejected():
    with pytest.raises(ValueError):
        step(output_schema="not a schema")
