"""Shared data model for pipeline definitions and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from secpipe.core.environment import EnvironmentScope


class FailurePolicy(str, Enum):
    """How a non-zero step outcome affects the rest of the run."""

    FAIL_FAST = "fail-fast"
    CONTINUE_ON_ERROR = "continue-on-error"


class StepStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class StageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL_FAILURE = "partial_failure"


@dataclass(frozen=True)
class CredentialRequest:
    """A credential a step needs, and the variables it is exposed under.

    Secret-token credentials use ``variable``; username/password credentials
    use ``username_variable`` and ``password_variable``.
    """

    id: str
    variable: Optional[str] = None
    username_variable: Optional[str] = None
    password_variable: Optional[str] = None

    @property
    def variables(self) -> List[str]:
        return [
            v
            for v in (self.variable, self.username_variable, self.password_variable)
            if v
        ]


@dataclass(frozen=True)
class ArtifactDeclaration:
    """A stage post-action: archive ``path`` under a human-readable label."""

    path: str
    label: str
    allow_empty: bool = True


@dataclass(frozen=True)
class StepDefinition:
    """A single external command and its execution policy."""

    name: str
    command: Union[str, Tuple[str, ...]]
    shell: bool = False
    working_dir: Optional[Path] = None
    env: Mapping[str, str] = field(default_factory=dict)
    required_env: Tuple[str, ...] = ()
    credentials: Tuple[CredentialRequest, ...] = ()
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST
    timeout: Optional[float] = None
    success_codes: Tuple[int, ...] = (0,)

    @property
    def continue_on_error(self) -> bool:
        return self.failure_policy == FailurePolicy.CONTINUE_ON_ERROR


@dataclass(frozen=True)
class StageDefinition:
    """A named, ordered list of steps plus artifact post-actions."""

    name: str
    steps: Tuple[StepDefinition, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    artifacts: Tuple[ArtifactDeclaration, ...] = ()


@dataclass
class StepResult:
    """Outcome of one step execution."""

    name: str
    status: StepStatus
    exit_code: Optional[int] = None
    output_path: Optional[Path] = None
    duration_seconds: float = 0.0
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED

    @classmethod
    def skipped(cls, name: str, reason: str = "skipped") -> "StepResult":
        return cls(name=name, status=StepStatus.SKIPPED, error=reason)


@dataclass
class Artifact:
    """An archived (or missing) file referenced by the aggregate report.

    The file itself stays owned by the step that produced it.
    """

    label: str
    pattern: str
    stage: str
    files: List[Path] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def present(self) -> bool:
        return bool(self.files)


@dataclass
class StageResult:
    name: str
    steps: List[StepResult] = field(default_factory=list)
    status: StageStatus = StageStatus.SUCCESS
    artifacts: List[Artifact] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_failed_steps(self) -> bool:
        return any(step.failed for step in self.steps)

    @property
    def duration_seconds(self) -> float:
        return round(sum(step.duration_seconds for step in self.steps), 3)


@dataclass
class PipelineRun:
    """One execution instance of a pipeline.

    Stage results are appended by the orchestrator in declaration order.
    """

    run_id: str
    started_at: datetime
    environment: EnvironmentScope
    stages: List[StageResult] = field(default_factory=list)
    status: RunStatus = RunStatus.SUCCESS
    finished_at: Optional[datetime] = None
    cancelled: bool = False
    aborted_stage: Optional[str] = None
    report: Optional["AggregateReport"] = None

    @property
    def aborted(self) -> bool:
        return self.aborted_stage is not None

    @property
    def exit_code(self) -> int:
        """0 for Success or PartialFailure, non-zero on abort or cancellation."""
        if self.cancelled:
            return 130
        return 0 if self.status != RunStatus.FAILURE else 1

    def get_stage(self, name: str) -> Optional[StageResult]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    @property
    def artifacts(self) -> List[Artifact]:
        return [artifact for stage in self.stages for artifact in stage.artifacts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "cancelled": self.cancelled,
            "aborted_stage": self.aborted_stage,
            "report": str(self.report.output_path) if self.report and self.report.output_path else None,
            "stages": [
                {
                    "name": stage.name,
                    "status": stage.status.value,
                    "has_failed_steps": stage.has_failed_steps,
                    "error": stage.error,
                    "steps": [
                        {
                            "name": step.name,
                            "status": step.status.value,
                            "exit_code": step.exit_code,
                            "duration_seconds": step.duration_seconds,
                            "timed_out": step.timed_out,
                            "output_path": str(step.output_path) if step.output_path else None,
                            "error": step.error,
                        }
                        for step in stage.steps
                    ],
                    "artifacts": [
                        {
                            "label": artifact.label,
                            "pattern": artifact.pattern,
                            "files": [str(p) for p in artifact.files],
                        }
                        for artifact in stage.artifacts
                    ],
                }
                for stage in self.stages
            ],
        }


@dataclass(frozen=True)
class ReportEntry:
    """One (label, artifact-or-absent) line of the aggregate report."""

    label: str
    stage: str
    links: Tuple[str, ...] = ()

    @property
    def present(self) -> bool:
        return bool(self.links)


@dataclass(frozen=True)
class AggregateReport:
    title: str
    run_id: str
    status: RunStatus
    generated_at: datetime
    entries: Tuple[ReportEntry, ...] = ()
    dashboard_url: Optional[str] = None
    output_path: Optional[Path] = None

    @property
    def absent_labels(self) -> List[str]:
        return [entry.label for entry in self.entries if not entry.present]
