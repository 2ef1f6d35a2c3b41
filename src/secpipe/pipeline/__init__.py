"""Pipeline execution: step executor, stage runner, orchestrator."""

from secpipe.pipeline.executor import StepExecutor
from secpipe.pipeline.orchestrator import (
    CommandPostAction,
    PipelineOrchestrator,
    PostAction,
    PostActions,
)
from secpipe.pipeline.stage import StageRunner

__all__ = [
    "CommandPostAction",
    "PipelineOrchestrator",
    "PostAction",
    "PostActions",
    "StageRunner",
    "StepExecutor",
]
