"""Layered, immutable environment scopes.

A scope is built from the process environment (optional), the pipeline-wide
values, stage-local overrides and step-local overrides. Later layers override
earlier ones key-for-key; keys a layer does not mention are inherited unchanged.
Scopes are threaded explicitly through orchestrator, stage and step calls.
"""

from __future__ import annotations

import os
import re
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from secpipe.core.errors import ConfigError
from secpipe.core.logging import get_logger

LOGGER = get_logger(__name__)

# ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class EnvironmentScope(Mapping[str, str]):
    """Read-only mapping of name to value, with a parent chain of layers."""

    __slots__ = ("_values", "_name", "_parent")

    def __init__(
        self,
        values: Optional[Mapping[str, str]] = None,
        name: str = "pipeline",
        parent: Optional["EnvironmentScope"] = None,
    ) -> None:
        merged: Dict[str, str] = dict(parent._values) if parent is not None else {}
        for key, value in (values or {}).items():
            merged[str(key)] = "" if value is None else str(value)
        self._values = MappingProxyType(merged)
        self._name = name
        self._parent = parent

    @classmethod
    def from_process(
        cls,
        values: Optional[Mapping[str, str]] = None,
        exclude: Optional[Callable[[str], bool]] = None,
    ) -> "EnvironmentScope":
        """Scope whose base layer is the current process environment.

        Keys for which ``exclude`` returns True are left out of the base layer.
        """
        inherited = {
            key: value
            for key, value in os.environ.items()
            if exclude is None or not exclude(key)
        }
        base = cls(inherited, name="process")
        if values:
            return base.layer(values, name="pipeline")
        return base

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> Optional["EnvironmentScope"]:
        return self._parent

    def layer(self, overrides: Optional[Mapping[str, str]], name: str = "") -> "EnvironmentScope":
        """Return a child scope with ``overrides`` applied on top of this one."""
        return EnvironmentScope(overrides or {}, name=name or self._name, parent=self)

    def get(self, key: str, default: str = "") -> str:  # type: ignore[override]
        # Absent optional keys resolve to an empty string.
        return self._values.get(key, default)

    def require(self, keys: Iterable[str]) -> None:
        """Raise ConfigError if any of ``keys`` is absent or empty."""
        missing = [key for key in keys if not self._values.get(key)]
        if missing:
            raise ConfigError(
                f"Missing required environment value(s) in scope '{self._name}': "
                + ", ".join(missing),
                missing_keys=missing,
            )

    def layers(self) -> List[str]:
        names: List[str] = []
        scope: Optional[EnvironmentScope] = self
        while scope is not None:
            names.append(scope._name)
            scope = scope._parent
        return list(reversed(names))

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"EnvironmentScope(layers={self.layers()!r}, keys={len(self._values)})"


def resolve(
    pipeline_env: Mapping[str, str],
    stage_overrides: Optional[Mapping[str, str]] = None,
    step_overrides: Optional[Mapping[str, str]] = None,
    required: Iterable[str] = (),
) -> EnvironmentScope:
    """Resolve the effective environment for one step.

    Args:
        pipeline_env: Pipeline-wide values (or an existing scope).
        stage_overrides: Stage-local overrides.
        step_overrides: Step-local overrides.
        required: Keys that must be present and non-empty after resolution.

    Returns:
        The effective EnvironmentScope.

    Raises:
        ConfigError: If a required key is absent after resolution.
    """
    if isinstance(pipeline_env, EnvironmentScope):
        scope = pipeline_env
    else:
        scope = EnvironmentScope(pipeline_env, name="pipeline")
    effective = scope.layer(stage_overrides, name="stage").layer(step_overrides, name="step")
    effective.require(required)
    return effective


def expand_vars(text: str, values: Mapping[str, str], warn: bool = True) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references against ``values``.

    Unset variables without a default expand to an empty string.
    """

    def _replace(match: "re.Match[str]") -> str:
        var_name = match.group(1)
        default_value = match.group(2)
        value = values[var_name] if var_name in values else None
        if value is not None:
            return value
        if default_value is not None:
            return default_value
        if warn:
            LOGGER.warning(f"Variable ${{{var_name}}} is not set and has no default")
        return ""

    return ENV_VAR_PATTERN.sub(_replace, text)
