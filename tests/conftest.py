"""Shared fixtures for secpipe tests.

External tools are simulated with ``sys.executable -c`` so tests stay hermetic.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Iterator

import pytest

from secpipe.core.credentials import CredentialVault, DictCredentialStore
from secpipe.core.models import StepDefinition


@pytest.fixture
def make_step() -> Callable[..., StepDefinition]:
    """Factory for steps that run a Python snippet."""

    def _make(name: str, code: str = "pass", **kwargs) -> StepDefinition:
        return StepDefinition(name=name, command=(sys.executable, "-c", code), **kwargs)

    return _make


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(
        DictCredentialStore(
            {
                "sonar-token": "s3cr3t-sonar-value",
                "docker-hub": {"username": "ci-bot", "password": "hunter2-registry"},
            }
        )
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def _reset_secpipe_logger() -> Iterator[None]:
    """Let records propagate to caplog and drop handlers installed by the CLI."""
    logger = logging.getLogger("secpipe")
    yield
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
