import pytest

from forgeflow.approval import ConsoleApprovalHandler, StaticApprovalHandler
from forgeflow.models import StepError


@pytest.mark.asyncio
async def test_static_handler_counts_requests():
    handler = StaticApprovalHandler(retry=True, proceed=False)

    assert await handler.confirm_retry([StepError("a", RuntimeError("x"))]) is True
    assert await handler.confirm_continue({"a": 1}) is False
    assert (handler.retry_requests, handler.continue_requests) == (1, 1)


@pytest.mark.asyncio
async def test_console_handler_reads_answers():
    answers = iter(["maybe", "N"])
    prompts = []

    def fake_input(prompt):
        prompts.append(prompt)
        return next(answers)

    handler = ConsoleApprovalHandler(input_func=fake_input)

    assert await handler.confirm_retry([StepError("a", RuntimeError("x"))]) is False
    assert prompts == ["Would you like to retry? [Y/n] ", "Would you like to retry? [Y/n] "]


@pytest.mark.asyncio
@pytest.mark.parametrize("answer, default, expected", [
    ("", True, True),
    ("", False, False),
    ("yes", False, True),
    ("0", True, False),
])
async def test_console_handler_defaults(answer, default, expected):
    handler = ConsoleApprovalHandler(input_func=lambda prompt: answer, default=default)
    assert await handler.confirm_continue({"code": "x" * 500}) is expected
