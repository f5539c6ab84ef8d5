"""GitLab-related Pydantic models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PipelineStatus(str, Enum):
    """GitLab pipeline status types."""
    CREATED = "created"
    WAITING_FOR_RESOURCE = "waiting_for_resource"
    PREPARING = "preparing"
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELED = "canceled"
    SKIPPED = "skipped"
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStatus.SUCCESS, PipelineStatus.FAILED, PipelineStatus.CANCELED)


class JobStatus(str, Enum):
    """GitLab job status types."""
    CREATED = "created"
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELED = "canceled"
    SKIPPED = "skipped"
    MANUAL = "manual"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class PipelineRun(BaseModel):
    """A GitLab pipeline as returned by the pipelines API."""
    model_config = ConfigDict(extra="ignore")

    id: int
    status: PipelineStatus = PipelineStatus.UNKNOWN
    ref: str = ""
    updated_at: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v):
        return PipelineStatus(v) if v is not None else PipelineStatus.UNKNOWN


class JobRun(BaseModel):
    """A single job inside a pipeline run."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    stage: Optional[str] = None
    status: JobStatus = JobStatus.UNKNOWN
    started_at: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v):
        return JobStatus(v) if v is not None else JobStatus.UNKNOWN

    @field_validator("started_at")
    @classmethod
    def blank_to_none(cls, v):
        return v or None

    @property
    def has_started(self) -> bool:
        return self.started_at is not None


class PipelineVariable(BaseModel):
    """Variable passed when creating a pipeline."""
    key: str
    value: str
    variable_type: str = "env_var"


class PipelineCreateRequest(BaseModel):
    """Body of ``POST /projects/:id/pipeline``."""
    ref: str
    variables: List[PipelineVariable] = Field(default_factory=list)

    def to_payload(self) -> dict:
        payload = {"ref": self.ref}
        if self.variables:
            payload["variables"] = [variable.model_dump() for variable in self.variables]
        return payload
