from forgeflow.config_validate import get_validation_errors, validate_workflow_definition


def definition(**overrides):
    data = {
        "id": "wf",
        "name": "Workflow",
        "steps": [{"id": "a", "name": "A", "type": "generate", "prompt": "go"}],
    }
    data.update(overrides)
    return data


def test_minimal_definition_is_valid():
    assert validate_workflow_definition(definition()) == (True, None)


def test_unknown_step_type_is_located():
    bad = definition(steps=[{"id": "a", "name": "A", "type": "compile", "prompt": "go"}])
    ok, message = validate_workflow_definition(bad)

    assert ok is False
    assert "steps.0.type" in message


def test_all_errors_are_listed():
    bad = definition(steps=[{"id": "a", "type": "generate", "prompt": "go", "retries": -1}])
    errors = get_validation_errors(bad)

    paths = [error["path"] for error in errors]
    assert ["steps", 0] in paths
    assert ["steps", 0, "retries"] in paths


def test_non_mapping_definition():
    errors = get_validation_errors(["wf"])
    assert errors[0]["path"] == []
    assert "Expected dict" in errors[0]["message"]
