import pytest

from conftest import FakeProvider
from forgeflow.error_handling import WorkflowConfigurationError
from forgeflow.workflow_engine import WorkflowEngine
from forgeflow.workflow_registry import get_workflow, list_workflows, load_workflows

VALIDATION_REPLY = '{{"valid": {valid}, "errors": [], "warnings": [], "suggestions": []}}'


def test_predefined_library_loads():
    summary = {item["id"]: item["steps"] for item in list_workflows()}

    assert summary == {
        "component-prd": 4,
        "component-generation": 4,
        "design-system-component": 4,
        "code-review": 5,
        "api-endpoint": 5,
        "migration": 5,
    }


def test_get_workflow_returns_models():
    workflow = get_workflow("component-generation")

    assert workflow.options.max_iterations == 3
    optimize = workflow.get_step("optimize-component")
    assert optimize.condition == "not outputs.validate-component.valid"
    assert optimize.dependencies == ["validate-component"]
    assert get_workflow("does-not-exist") is None


def test_invalid_file_is_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("broken:\n  name: Broken\n  steps:\n    - id: a\n      name: A\n      type: compile\n      prompt: x\n")

    with pytest.raises(WorkflowConfigurationError, match="Workflow 'broken'"):
        load_workflows(str(path))


def test_cycle_in_file_is_rejected(tmp_path):
    path = tmp_path / "cycle.yaml"
    path.write_text(
        "loop:\n  name: Loop\n  steps:\n"
        "    - {id: a, name: A, type: generate, prompt: x, dependencies: [b]}\n"
        "    - {id: b, name: B, type: generate, prompt: y, dependencies: [a]}\n"
    )

    with pytest.raises(WorkflowConfigurationError, match="Circular dependency"):
        load_workflows(str(path))


@pytest.mark.asyncio
@pytest.mark.parametrize("valid, expect_optimize", [("true", False), ("false", True)])
async def test_component_generation_optimizes_only_invalid_output(valid, expect_optimize):
    def responder(prompt, options, call_number):
        if "Please validate the output" in prompt:
            return VALIDATION_REPLY.format(valid=valid)
        return "export const Button = () => null;"

    provider = FakeProvider(responder)
    engine = WorkflowEngine(provider, retry_base_delay=0)
    result = await engine.execute_workflow(
        get_workflow("component-generation"),
        initial_input={"framework": "react", "name": "Button", "description": "A button"},
    )

    assert result.success is True
    assert result.iterations == 1
    assert ("optimize-component" in result.outputs) is expect_optimize
    assert result.outputs["validate-component"]["valid"] is (valid == "true")
    assert "Generate a react component" in provider.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_code_review_runs_all_reviews():
    provider = FakeProvider("looks good")
    engine = WorkflowEngine(provider, retry_base_delay=0)

    result = await engine.execute_workflow(get_workflow("code-review"), initial_input={"code": "eval(x)"})

    assert result.success is True
    assert [artifact.step for artifact in result.artifacts][-1] == "generate-report"
    assert len(result.artifacts) == 5
    report_prompt = provider.prompts_containing("Generate comprehensive code review report")[0]["prompt"]
    assert "Security: looks good" in report_prompt
