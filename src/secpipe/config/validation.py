"""Configuration validation for secpipe.

Unknown keys produce warnings with "did you mean" suggestions. Structural
problems that would make the pipeline unrunnable raise ConfigError, so they
surface before any stage starts.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any, Dict, List, Optional, Set

from secpipe.core.errors import ConfigError
from secpipe.core.logging import get_logger
from secpipe.core.models import FailurePolicy

LOGGER = get_logger(__name__)

VALID_TOP_LEVEL_KEYS: Set[str] = {
    "name",
    "title",
    "dashboard_url",
    "environment",
    "required_env",
    "inherit_env",
    "output",
    "credentials",
    "stages",
    "post",
}

VALID_OUTPUT_KEYS: Set[str] = {"dir", "report", "archive_dir", "formats"}

VALID_CREDENTIALS_KEYS: Set[str] = {"store", "path", "prefix"}

VALID_POST_KEYS: Set[str] = {"always", "on_failure"}

VALID_STAGE_KEYS: Set[str] = {"name", "environment", "steps", "artifacts"}

VALID_STEP_KEYS: Set[str] = {
    "name",
    "run",
    "shell",
    "working_dir",
    "environment",
    "required_env",
    "credentials",
    "failure_policy",
    "timeout",
    "success_codes",
}

VALID_ARTIFACT_KEYS: Set[str] = {"path", "label", "allow_empty"}

VALID_CREDENTIAL_REQUEST_KEYS: Set[str] = {
    "id",
    "variable",
    "username_variable",
    "password_variable",
}

VALID_FAILURE_POLICIES: Set[str] = {policy.value for policy in FailurePolicy}


@dataclass
class ConfigValidationWarning:
    """A validation warning for configuration."""

    message: str
    source: str
    key: Optional[str] = None
    suggestion: Optional[str] = None


class _Validator:
    def __init__(self, source: str) -> None:
        self.source = source
        self.warnings: List[ConfigValidationWarning] = []

    def error(self, message: str) -> ConfigError:
        return ConfigError(f"{message} in {self.source}")

    def check_keys(self, data: Dict[str, Any], valid: Set[str], prefix: str) -> None:
        for key in data.keys():
            if key in valid:
                continue
            if prefix:
                full_key = f"{prefix}.{key}"
                message = f"Unknown key '{full_key}'"
            else:
                full_key = str(key)
                message = f"Unknown top-level key '{key}'"
            warning = ConfigValidationWarning(
                message=message,
                source=self.source,
                key=full_key,
                suggestion=_suggest_key(str(key), valid),
            )
            self.warnings.append(warning)
            _log_warning(warning)

    def require_mapping(self, value: Any, key: str) -> Dict[str, Any]:
        if not isinstance(value, dict):
            raise self.error(f"'{key}' must be a mapping, got {type(value).__name__}")
        return value

    def require_list(self, value: Any, key: str) -> List[Any]:
        if not isinstance(value, list):
            raise self.error(f"'{key}' must be a list, got {type(value).__name__}")
        return value

    def check_env(self, value: Any, key: str) -> None:
        if value is None:
            return
        env = self.require_mapping(value, key)
        for name, env_value in env.items():
            if isinstance(env_value, (dict, list)):
                raise self.error(f"'{key}.{name}' must be a scalar value")

    def check_name_list(self, value: Any, key: str) -> None:
        if value is None:
            return
        for item in self.require_list(value, key):
            if not isinstance(item, str):
                raise self.error(f"'{key}' entries must be strings")


def validate_config(
    data: Dict[str, Any],
    source: str,
) -> List[ConfigValidationWarning]:
    """Validate a pipeline configuration dictionary.

    Args:
        data: Config dictionary to validate.
        source: Source file path for messages.

    Returns:
        List of validation warnings for unknown keys.

    Raises:
        ConfigError: On structural problems (no stages, duplicate names,
            steps without a command, invalid policies, timeouts or env values).
    """
    v = _Validator(source)

    if not isinstance(data, dict):
        raise v.error(f"Config must be a mapping, got {type(data).__name__}")

    v.check_keys(data, VALID_TOP_LEVEL_KEYS, "")
    v.check_env(data.get("environment"), "environment")
    v.check_name_list(data.get("required_env"), "required_env")

    inherit_env = data.get("inherit_env")
    if inherit_env is not None and not isinstance(inherit_env, bool):
        raise v.error("'inherit_env' must be a boolean")

    output = data.get("output")
    if output is not None:
        output = v.require_mapping(output, "output")
        v.check_keys(output, VALID_OUTPUT_KEYS, "output")
        v.check_name_list(output.get("formats"), "output.formats")

    credentials = data.get("credentials")
    if credentials is not None:
        credentials = v.require_mapping(credentials, "credentials")
        v.check_keys(credentials, VALID_CREDENTIALS_KEYS, "credentials")
        store = credentials.get("store", "env")
        if store not in ("env", "file"):
            suggestion = _suggest_key(str(store), {"env", "file"})
            hint = f" (did you mean '{suggestion}'?)" if suggestion else ""
            raise v.error(f"Unknown credential store '{store}'{hint}")

    stages = data.get("stages")
    if not stages:
        raise v.error("Pipeline defines no stages")
    stage_names: Set[str] = set()
    for index, stage in enumerate(v.require_list(stages, "stages")):
        prefix = f"stages[{index}]"
        stage = v.require_mapping(stage, prefix)
        name = stage.get("name")
        if not name or not isinstance(name, str):
            raise v.error(f"'{prefix}' has no name")
        if name in stage_names:
            raise v.error(f"Duplicate stage name '{name}'")
        stage_names.add(name)
        _validate_stage(v, stage, f"stages.{name}")

    post = data.get("post")
    if post is not None:
        post = v.require_mapping(post, "post")
        v.check_keys(post, VALID_POST_KEYS, "post")
        for kind in VALID_POST_KEYS:
            steps = post.get(kind)
            if steps is None:
                continue
            for index, step in enumerate(v.require_list(steps, f"post.{kind}")):
                _validate_step(v, step, f"post.{kind}[{index}]")

    return v.warnings


def _validate_stage(v: _Validator, stage: Dict[str, Any], prefix: str) -> None:
    v.check_keys(stage, VALID_STAGE_KEYS, prefix)
    v.check_env(stage.get("environment"), f"{prefix}.environment")

    steps = stage.get("steps")
    if not steps:
        raise v.error(f"'{prefix}' defines no steps")
    step_names: Set[str] = set()
    for index, step in enumerate(v.require_list(steps, f"{prefix}.steps")):
        name = _validate_step(v, step, f"{prefix}.steps[{index}]")
        if name in step_names:
            raise v.error(f"Duplicate step name '{name}' in '{prefix}'")
        step_names.add(name)

    artifacts = stage.get("artifacts")
    if artifacts is None:
        return
    for index, artifact in enumerate(v.require_list(artifacts, f"{prefix}.artifacts")):
        key = f"{prefix}.artifacts[{index}]"
        if isinstance(artifact, str):
            continue
        artifact = v.require_mapping(artifact, key)
        v.check_keys(artifact, VALID_ARTIFACT_KEYS, key)
        if not artifact.get("path"):
            raise v.error(f"'{key}' has no path")


def _validate_step(v: _Validator, step: Any, prefix: str) -> str:
    step = v.require_mapping(step, prefix)
    v.check_keys(step, VALID_STEP_KEYS, prefix)

    name = step.get("name")
    if not name or not isinstance(name, str):
        raise v.error(f"'{prefix}' has no name")

    command = step.get("run")
    if not command or not isinstance(command, (str, list)):
        raise v.error(f"Step '{name}' has no command ('run')")
    if isinstance(command, list) and not all(isinstance(p, (str, int, float)) for p in command):
        raise v.error(f"Step '{name}': 'run' list entries must be strings")
    if isinstance(command, str) and not step.get("shell"):
        try:
            shlex.split(command)
        except ValueError as e:
            raise v.error(f"Step '{name}': cannot parse 'run' ({e})") from e

    policy = step.get("failure_policy")
    if policy is not None and policy not in VALID_FAILURE_POLICIES:
        suggestion = _suggest_key(str(policy), VALID_FAILURE_POLICIES)
        hint = f" (did you mean '{suggestion}'?)" if suggestion else ""
        raise v.error(f"Step '{name}': invalid failure_policy '{policy}'{hint}")

    timeout = step.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise v.error(f"Step '{name}': 'timeout' must be a positive number of seconds")

    codes = step.get("success_codes")
    if codes is not None:
        codes = v.require_list(codes, f"{prefix}.success_codes")
        if not codes or not all(isinstance(c, int) and not isinstance(c, bool) for c in codes):
            raise v.error(f"Step '{name}': 'success_codes' must be a non-empty list of integers")

    shell = step.get("shell")
    if shell is not None and not isinstance(shell, bool):
        raise v.error(f"Step '{name}': 'shell' must be a boolean")

    v.check_env(step.get("environment"), f"{prefix}.environment")
    v.check_name_list(step.get("required_env"), f"{prefix}.required_env")

    credentials = step.get("credentials")
    if credentials is not None:
        for index, request in enumerate(v.require_list(credentials, f"{prefix}.credentials")):
            key = f"{prefix}.credentials[{index}]"
            if isinstance(request, str):
                continue
            request = v.require_mapping(request, key)
            v.check_keys(request, VALID_CREDENTIAL_REQUEST_KEYS, key)
            if not request.get("id"):
                raise v.error(f"'{key}' has no id")
            has_token_var = bool(request.get("variable"))
            has_pair = bool(request.get("username_variable") or request.get("password_variable"))
            if not has_token_var and not has_pair:
                raise v.error(f"'{key}' must name 'variable' or username/password variables")

    return name


def _suggest_key(invalid_key: str, valid_keys: Set[str]) -> Optional[str]:
    """Suggest a valid key for a potential typo.

    Args:
        invalid_key: The invalid key entered.
        valid_keys: Set of valid keys.

    Returns:
        Closest matching valid key, or None if no good match.
    """
    matches = get_close_matches(invalid_key, list(valid_keys), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _log_warning(warning: ConfigValidationWarning) -> None:
    """Log a validation warning."""
    msg = f"{warning.message} in {warning.source}"
    if warning.suggestion:
        msg += f" (did you mean '{warning.suggestion}'?)"
    LOGGER.warning(msg)
