"""Pydantic models for the build orchestrator."""

from .build import (
    BuildMode,
    BuildOutcome,
    BuildPlan,
    BuildReport,
    BuildRequest,
    EnvironmentVariableSet,
    OutcomeStatus,
    Service,
)
from .gitlab import JobRun, JobStatus, PipelineRun, PipelineStatus

__all__ = [
    "BuildMode",
    "BuildOutcome",
    "BuildPlan",
    "BuildReport",
    "BuildRequest",
    "EnvironmentVariableSet",
    "OutcomeStatus",
    "Service",
    "JobRun",
    "JobStatus",
    "PipelineRun",
    "PipelineStatus",
]
