"""Tests for secpipe.config.validation."""

from __future__ import annotations

from typing import Any, Dict

import pytest

from secpipe.config.validation import validate_config
from secpipe.core.errors import ConfigError


def _pipeline(**overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": "webapp",
        "stages": [
            {
                "name": "build",
                "steps": [{"name": "compile", "run": "make build"}],
            }
        ],
    }
    data.update(overrides)
    return data


def _step(**fields: Any) -> Dict[str, Any]:
    step: Dict[str, Any] = {"name": "s", "run": "true"}
    step.update(fields)
    return _pipeline(stages=[{"name": "a", "steps": [step]}])


class TestWarnings:
    """Unknown keys produce warnings, not errors."""

    def test_valid_config_has_no_warnings(self) -> None:
        assert validate_config(_pipeline(), source="test.yml") == []

    def test_unknown_top_level_key_with_suggestion(self) -> None:
        warnings = validate_config(_pipeline(enviroment={}), source="test.yml")
        assert len(warnings) == 1
        assert warnings[0].key == "enviroment"
        assert warnings[0].suggestion == "environment"

    def test_unknown_step_key(self) -> None:
        warnings = validate_config(_step(timout=5), source="test.yml")
        assert warnings[0].key == "stages.a.steps[0].timout"
        assert warnings[0].suggestion == "timeout"

    def test_unknown_output_key(self) -> None:
        warnings = validate_config(_pipeline(output={"formt": ["html"]}), source="test.yml")
        assert warnings[0].key == "output.formt"


class TestStructuralErrors:
    """Structural problems raise ConfigError."""

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ConfigError):
            validate_config(["a"], source="test.yml")  # type: ignore[arg-type]

    def test_no_stages(self) -> None:
        with pytest.raises(ConfigError, match="no stages"):
            validate_config(_pipeline(stages=[]), source="test.yml")

    def test_duplicate_stage_names(self) -> None:
        stage = {"name": "dup", "steps": [{"name": "s", "run": "true"}]}
        with pytest.raises(ConfigError, match="Duplicate stage name 'dup'"):
            validate_config(_pipeline(stages=[stage, stage]), source="test.yml")

    def test_duplicate_step_names(self) -> None:
        step = {"name": "s", "run": "true"}
        with pytest.raises(ConfigError, match="Duplicate step name"):
            validate_config(
                _pipeline(stages=[{"name": "a", "steps": [step, step]}]), source="test.yml"
            )

    def test_stage_without_steps(self) -> None:
        with pytest.raises(ConfigError, match="defines no steps"):
            validate_config(_pipeline(stages=[{"name": "a"}]), source="test.yml")

    def test_step_without_command(self) -> None:
        with pytest.raises(ConfigError, match="has no command"):
            validate_config(_step(run=None), source="test.yml")

    def test_unbalanced_quote_in_run(self) -> None:
        with pytest.raises(ConfigError, match="cannot parse 'run'"):
            validate_config(_step(run='echo "unbalanced'), source="test.yml")

    def test_unbalanced_quote_in_post_action(self) -> None:
        data = _pipeline(post={"always": [{"name": "notify", "run": "curl 'http://x"}]})
        with pytest.raises(ConfigError, match="Step 'notify'"):
            validate_config(data, source="test.yml")

    def test_shell_command_is_not_split(self) -> None:
        assert validate_config(_step(run='echo "unbalanced', shell=True), source="test.yml") == []

    def test_invalid_failure_policy_suggests(self) -> None:
        with pytest.raises(ConfigError, match="did you mean 'continue-on-error'"):
            validate_config(_step(failure_policy="continue-on-eror"), source="test.yml")

    @pytest.mark.parametrize("timeout", [0, -5, "ten", True])
    def test_invalid_timeout(self, timeout: Any) -> None:
        with pytest.raises(ConfigError, match="timeout"):
            validate_config(_step(timeout=timeout), source="test.yml")

    def test_invalid_success_codes(self) -> None:
        with pytest.raises(ConfigError, match="success_codes"):
            validate_config(_step(success_codes=["zero"]), source="test.yml")

    def test_nested_environment_value(self) -> None:
        with pytest.raises(ConfigError, match="scalar"):
            validate_config(_pipeline(environment={"A": {"nested": 1}}), source="test.yml")

    def test_credential_request_without_variable(self) -> None:
        with pytest.raises(ConfigError, match="variable"):
            validate_config(_step(credentials=[{"id": "sonar-token"}]), source="test.yml")

    def test_artifact_without_path(self) -> None:
        data = _pipeline(
            stages=[
                {
                    "name": "a",
                    "steps": [{"name": "s", "run": "true"}],
                    "artifacts": [{"label": "Report"}],
                }
            ]
        )
        with pytest.raises(ConfigError, match="has no path"):
            validate_config(data, source="test.yml")

    def test_unknown_credential_store(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential store"):
            validate_config(_pipeline(credentials={"store": "vault"}), source="test.yml")

    def test_error_names_source(self) -> None:
        with pytest.raises(ConfigError, match="pipelines/ci.yml"):
            validate_config(_pipeline(stages=[]), source="pipelines/ci.yml")
