"""Pipeline-related GitLab API operations."""

from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import structlog
from pydantic import BaseModel, ValidationError

from ...core.exceptions import GitLabAPIError
from ...models.gitlab import (
    JobRun,
    PipelineCreateRequest,
    PipelineRun,
    PipelineStatus,
    PipelineVariable,
)
from .base_client import BaseClient

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: Type[ModelT], data: Any, endpoint: str) -> ModelT:
    """Validate a GitLab payload, reporting unexpected shapes as API errors."""
    try:
        return model.model_validate(data)
    except (ValidationError, TypeError) as e:
        raise GitLabAPIError(
            f"Unexpected {model.__name__} payload from {endpoint}: {e}",
            response_data=str(data),
        ) from e


class PipelineOperations(BaseClient):
    """Pipeline-related GitLab API operations."""

    async def create_pipeline(
        self,
        project_id: Union[int, str],
        ref: str,
        variables: Optional[Dict[str, str]] = None,
    ) -> PipelineRun:
        """Create a pipeline for a branch.

        Args:
            project_id: Project ID or path with namespace
            ref: Branch to run the pipeline on
            variables: Pipeline variables, sent as env_var entries

        Returns:
            The created pipeline run
        """
        request = PipelineCreateRequest(
            ref=ref,
            variables=[
                PipelineVariable(key=key, value=value)
                for key, value in (variables or {}).items()
            ],
        )
        endpoint = f"{self._project_path(project_id)}/pipeline"
        data = await self._make_request("POST", endpoint, json_data=request.to_payload())

        pipeline = _parse(PipelineRun, data, endpoint)
        logger.info(
            "Pipeline created",
            project_id=project_id,
            pipeline_id=pipeline.id,
            ref=pipeline.ref,
            status=pipeline.status.value,
        )
        return pipeline

    async def get_pipeline(self, project_id: Union[int, str], pipeline_id: int) -> PipelineRun:
        """Get pipeline information.

        Args:
            project_id: Project ID or path with namespace
            pipeline_id: Pipeline ID

        Returns:
            GitLab pipeline information
        """
        endpoint = f"{self._project_path(project_id)}/pipelines/{pipeline_id}"
        data = await self._make_request("GET", endpoint)

        return _parse(PipelineRun, data, endpoint)

    async def get_pipeline_jobs(self, project_id: Union[int, str], pipeline_id: int) -> List[JobRun]:
        """Get jobs for a specific pipeline.

        Args:
            project_id: Project ID or path with namespace
            pipeline_id: Pipeline ID

        Returns:
            List of pipeline jobs
        """
        endpoint = f"{self._project_path(project_id)}/pipelines/{pipeline_id}/jobs"
        data = await self._make_request("GET", endpoint)
        if not isinstance(data, list):
            raise GitLabAPIError(f"Unexpected jobs payload from {endpoint}", response_data=str(data))

        return [_parse(JobRun, job_data, endpoint) for job_data in data]

    async def get_latest_successful_pipeline(
        self,
        project_id: Union[int, str],
        ref: str,
    ) -> Optional[PipelineRun]:
        """Get the most recent successful pipeline of a branch.

        Returns:
            The pipeline, or None when the branch never built successfully
        """
        endpoint = f"{self._project_path(project_id)}/pipelines"
        params = {"ref": ref, "status": PipelineStatus.SUCCESS.value, "per_page": 1}
        data = await self._make_request("GET", endpoint, params=params)
        if not isinstance(data, list):
            raise GitLabAPIError(f"Unexpected pipelines payload from {endpoint}", response_data=str(data))

        if not data:
            return None
        return _parse(PipelineRun, data[0], endpoint)
