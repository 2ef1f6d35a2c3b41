"""Configuration data models for secpipe.

Defines typed configuration classes that represent the .secpipe.yml structure.
Stages and steps are converted straight into the pipeline's own
StageDefinition/StepDefinition objects by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from secpipe.core.credentials import (
    DEFAULT_ENV_PREFIX,
    CredentialStore,
    EnvCredentialStore,
    FileCredentialStore,
)
from secpipe.core.environment import EnvironmentScope
from secpipe.core.errors import ConfigError
from secpipe.core.models import StageDefinition, StepDefinition

DEFAULT_OUTPUT_DIR = ".secpipe"
DEFAULT_REPORT_NAME = "security-report"
DEFAULT_FORMATS = ["html", "json", "summary"]

VALID_CREDENTIAL_STORES = {"env", "file"}


@dataclass
class OutputConfig:
    """Where logs, archived artifacts and reports are written."""

    dir: str = DEFAULT_OUTPUT_DIR
    report: str = DEFAULT_REPORT_NAME
    archive_dir: Optional[str] = None  # Defaults to <dir>/archive
    formats: List[str] = field(default_factory=lambda: list(DEFAULT_FORMATS))

    def output_path(self, workspace: Path) -> Path:
        path = Path(self.dir)
        return path if path.is_absolute() else workspace / path

    def archive_path(self, workspace: Path) -> Path:
        if self.archive_dir is None:
            return self.output_path(workspace) / "archive"
        path = Path(self.archive_dir)
        return path if path.is_absolute() else workspace / path

    def log_path(self, workspace: Path) -> Path:
        return self.output_path(workspace) / "logs"


@dataclass
class CredentialsConfig:
    """Credential store selection.

    ``env`` reads ``<prefix><ID>`` variables; ``file`` reads one file per
    credential id from ``path``.
    """

    store: str = "env"
    path: Optional[str] = None
    prefix: str = DEFAULT_ENV_PREFIX

    def build_store(self, workspace: Path) -> CredentialStore:
        if self.store == "env":
            return EnvCredentialStore(prefix=self.prefix)
        if self.store == "file":
            if not self.path:
                raise ConfigError("'credentials.path' is required for the file store")
            path = Path(self.path).expanduser()
            if not path.is_absolute():
                path = workspace / path
            return FileCredentialStore(path)
        raise ConfigError(f"Unknown credential store '{self.store}'")


@dataclass
class PostConfig:
    """Pipeline-level post-action commands."""

    always: List[StepDefinition] = field(default_factory=list)
    on_failure: List[StepDefinition] = field(default_factory=list)


@dataclass
class SecPipeConfig:
    """Complete secpipe pipeline definition.

    Example .secpipe.yml:
        name: webapp
        environment:
          IMAGE: registry.example.com/webapp
        stages:
          - name: secret-scan
            steps:
              - name: gitleaks
                run: gitleaks detect --report-path gitleaks.json
                failure_policy: continue-on-error
            artifacts:
              - path: gitleaks.json
                label: Secret Scan
    """

    name: str = "pipeline"
    title: str = "Security Pipeline Report"
    dashboard_url: Optional[str] = None
    environment: Dict[str, str] = field(default_factory=dict)
    required_env: List[str] = field(default_factory=list)
    inherit_env: bool = True
    output: OutputConfig = field(default_factory=OutputConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    stages: List[StageDefinition] = field(default_factory=list)
    post: PostConfig = field(default_factory=PostConfig)

    # Metadata (not from YAML, set by loader)
    _config_sources: List[str] = field(default_factory=list, repr=False)
    _warnings: List[str] = field(default_factory=list, repr=False)

    @property
    def config_sources(self) -> List[str]:
        return list(self._config_sources)

    @property
    def warnings(self) -> List[str]:
        """Validation warnings recorded while loading."""
        return list(self._warnings)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def get_stage(self, name: str) -> Optional[StageDefinition]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def build_environment(self, store: Optional[CredentialStore] = None) -> EnvironmentScope:
        """Pipeline-level scope, on top of the process environment if inherited.

        Variables the credential store reads secrets from are never inherited;
        steps only see a secret through their own binding.
        """
        if not self.inherit_env:
            return EnvironmentScope(self.environment, name="pipeline")
        if store is None and self.credentials.store == "env":
            store = EnvCredentialStore(prefix=self.credentials.prefix)
        exclude = store.reserves if store is not None else None
        return EnvironmentScope.from_process(self.environment, exclude=exclude)
