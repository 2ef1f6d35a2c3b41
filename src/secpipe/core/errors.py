"""Exception hierarchy for secpipe.

Error kinds:
- ConfigError: malformed or missing required configuration (fatal, before any stage)
- CredentialError: unresolvable credential (fatal to the owning stage)
- StepExecutionError: non-zero exit or timeout of a fail-fast step
- ArtifactMissingError: declared output absent (never fatal)
- StageAbortedError: a stage ended in fail-fast termination
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from secpipe.core.models import StageResult, StepResult


class SecPipeError(Exception):
    """Base error for pipeline failures."""


class ConfigError(SecPipeError):
    """Configuration loading, parsing or resolution error."""

    def __init__(self, message: str, missing_keys: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.missing_keys = missing_keys or []


class CredentialError(SecPipeError):
    """Raised when a credential identifier does not resolve to a stored credential."""

    def __init__(self, credential_id: str, message: Optional[str] = None) -> None:
        self.credential_id = credential_id
        super().__init__(message or f"Credential not found: {credential_id}")


class StepExecutionError(SecPipeError):
    """Raised when a fail-fast step exits non-zero or times out."""

    def __init__(self, result: "StepResult") -> None:
        self.result = result
        reason = "timed out" if result.timed_out else f"exited with code {result.exit_code}"
        super().__init__(f"Step '{result.name}' {reason}")


class ArtifactMissingError(SecPipeError):
    """Raised when a declared artifact does not exist and empty archives are not allowed."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No artifacts found matching '{path}'")


class StageAbortedError(SecPipeError):
    """Raised by the stage runner when a stage terminates via fail-fast."""

    def __init__(self, result: "StageResult", cause: Optional[BaseException] = None) -> None:
        self.result = result
        self.cause = cause
        message = f"Stage '{result.name}' aborted"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
