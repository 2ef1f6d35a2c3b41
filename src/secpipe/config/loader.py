"""Configuration file loading.

Handles loading the pipeline definition from YAML with:
- Project-level config (.secpipe.yml) or an explicit --config path
- Environment variable expansion (${VAR}, ${VAR:-default})
- Conversion into typed stage and step definitions

Step commands (``run``) are not expanded here; the executor expands them
against the step's effective environment at execution time.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from secpipe.config.models import (
    CredentialsConfig,
    OutputConfig,
    PostConfig,
    SecPipeConfig,
)
from secpipe.config.validation import validate_config
from secpipe.core.credentials import DEFAULT_ENV_PREFIX, normalize_credential_id
from secpipe.core.environment import expand_vars
from secpipe.core.errors import ConfigError
from secpipe.core.logging import get_logger
from secpipe.core.models import (
    ArtifactDeclaration,
    CredentialRequest,
    FailurePolicy,
    StageDefinition,
    StepDefinition,
)

LOGGER = get_logger(__name__)

# Config file names
PROJECT_CONFIG_NAMES = [".secpipe.yml", ".secpipe.yaml", "secpipe.yml", "secpipe.yaml"]

# Keys whose string values are expanded later, not at load time
DEFERRED_EXPANSION_KEYS = {"run"}


def load_config(
    project_root: Path,
    cli_config_path: Optional[Path] = None,
) -> SecPipeConfig:
    """Load the pipeline definition.

    Args:
        project_root: Workspace directory searched for .secpipe.yml.
        cli_config_path: Optional explicit config file (--config flag).

    Returns:
        Validated SecPipeConfig instance.

    Raises:
        ConfigError: If no config exists, the YAML is invalid, or the
            definition is structurally invalid.
    """
    if cli_config_path:
        config_path = cli_config_path
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        source = f"custom:{config_path}"
    else:
        found = find_project_config(project_root)
        if found is None:
            raise ConfigError(
                f"No pipeline definition found in {project_root} "
                f"(looked for {', '.join(PROJECT_CONFIG_NAMES)})"
            )
        config_path = found
        source = f"project:{config_path}"

    try:
        data = load_yaml_file(config_path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    warnings = validate_config(data, source=str(config_path))
    config = dict_to_config(data)
    config._config_sources = [source]
    config._warnings = [
        w.message + (f" (did you mean '{w.suggestion}'?)" if w.suggestion else "")
        for w in warnings
    ]
    LOGGER.debug(f"Loaded pipeline '{config.name}' from {config_path}")
    return config


def find_project_config(project_root: Path) -> Optional[Path]:
    """Find config file in project root.

    Searches for .secpipe.yml, .secpipe.yaml, secpipe.yml, secpipe.yaml
    in the project root directory.

    Args:
        project_root: Directory to search in.

    Returns:
        Path to config file if found, None otherwise.
    """
    for name in PROJECT_CONFIG_NAMES:
        config_path = project_root / name
        if config_path.exists():
            return config_path
    return None


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML config file.

    Performs environment variable expansion on string values.

    Args:
        path: Path to YAML file.

    Returns:
        Parsed dictionary.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    data = yaml.safe_load(content)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    return expand_env_vars(data)


def expand_env_vars(data: Any, key: Optional[str] = None) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and ${VAR:-default} syntax. Values under ``run`` keys
    are left untouched.

    Args:
        data: Config data (dict, list, or scalar).
        key: Key the data was found under.

    Returns:
        Data with environment variables expanded.
    """
    if key in DEFERRED_EXPANSION_KEYS:
        return data
    if isinstance(data, dict):
        return {k: expand_env_vars(v, k) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        return expand_vars(data, os.environ)
    else:
        return data


def dict_to_config(data: Dict[str, Any]) -> SecPipeConfig:
    """Convert a validated dict to a typed SecPipeConfig.

    Args:
        data: Configuration dictionary.

    Returns:
        Typed SecPipeConfig instance.
    """
    output_data = data.get("output") or {}
    output = OutputConfig()
    if "dir" in output_data:
        output.dir = str(output_data["dir"])
    if "report" in output_data:
        output.report = str(output_data["report"])
    if output_data.get("archive_dir"):
        output.archive_dir = str(output_data["archive_dir"])
    if "formats" in output_data:
        output.formats = list(output_data["formats"])

    credentials_data = data.get("credentials") or {}
    credentials = CredentialsConfig(
        store=credentials_data.get("store", "env"),
        path=credentials_data.get("path"),
        prefix=credentials_data.get("prefix", DEFAULT_ENV_PREFIX),
    )

    post_data = data.get("post") or {}
    post = PostConfig(
        always=[_parse_step(step) for step in post_data.get("always") or []],
        on_failure=[_parse_step(step) for step in post_data.get("on_failure") or []],
    )

    defaults = SecPipeConfig()
    return SecPipeConfig(
        name=str(data.get("name", defaults.name)),
        title=str(data.get("title", defaults.title)),
        dashboard_url=data.get("dashboard_url"),
        environment=_env_dict(data.get("environment")),
        required_env=list(data.get("required_env") or []),
        inherit_env=data.get("inherit_env", True),
        output=output,
        credentials=credentials,
        stages=[_parse_stage(stage) for stage in data.get("stages") or []],
        post=post,
    )


def _parse_stage(data: Dict[str, Any]) -> StageDefinition:
    return StageDefinition(
        name=data["name"],
        steps=tuple(_parse_step(step) for step in data.get("steps") or []),
        env=_env_dict(data.get("environment")),
        artifacts=tuple(_parse_artifact(item) for item in data.get("artifacts") or []),
    )


def _parse_step(data: Dict[str, Any]) -> StepDefinition:
    command = data["run"]
    if isinstance(command, list):
        command = tuple(str(part) for part in command)
    working_dir = data.get("working_dir")
    timeout = data.get("timeout")
    return StepDefinition(
        name=data["name"],
        command=command,
        shell=bool(data.get("shell", False)),
        working_dir=Path(working_dir) if working_dir else None,
        env=_env_dict(data.get("environment")),
        required_env=tuple(data.get("required_env") or ()),
        credentials=_parse_credentials(data.get("credentials") or []),
        failure_policy=FailurePolicy(data.get("failure_policy", FailurePolicy.FAIL_FAST.value)),
        timeout=float(timeout) if timeout is not None else None,
        success_codes=tuple(data.get("success_codes") or (0,)),
    )


def _parse_artifact(data: Any) -> ArtifactDeclaration:
    if isinstance(data, str):
        return ArtifactDeclaration(path=data, label=data)
    path = str(data["path"])
    return ArtifactDeclaration(
        path=path,
        label=str(data.get("label") or path),
        allow_empty=bool(data.get("allow_empty", True)),
    )


def _parse_credentials(items: List[Any]) -> Tuple[CredentialRequest, ...]:
    requests: List[CredentialRequest] = []
    for item in items:
        if isinstance(item, str):
            requests.append(
                CredentialRequest(id=item, variable=normalize_credential_id(item))
            )
            continue
        requests.append(
            CredentialRequest(
                id=str(item["id"]),
                variable=item.get("variable"),
                username_variable=item.get("username_variable"),
                password_variable=item.get("password_variable"),
            )
        )
    return tuple(requests)


def _env_dict(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Environment values as strings; YAML booleans become 'true'/'false'."""
    result: Dict[str, str] = {}
    for key, value in (data or {}).items():
        if value is None:
            result[str(key)] = ""
        elif isinstance(value, bool):
            result[str(key)] = "true" if value else "false"
        else:
            result[str(key)] = str(value)
    return result
