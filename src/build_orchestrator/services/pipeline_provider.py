"""Triggering and monitoring of GitLab pipelines."""

import asyncio
from datetime import datetime
from typing import Dict, Optional

import structlog

from ..core.config import settings
from ..core.exceptions import (
    ConfigurationError,
    GitLabAPIError,
    PipelineTimeoutError,
    ProviderError,
)
from ..models.build import Service
from ..models.gitlab import PipelineStatus
from ..utils.timestamps import format_local, parse_gitlab_timestamp
from .gitlab import GitLabClient, LogProcessor
from .progress import ProgressStream

logger = structlog.get_logger(__name__)


class PipelineProvider:
    """Runs GitLab pipelines for services and reports on their history.

    GitLab offers no push channel for pipeline progress, so a triggered
    pipeline is polled on a fixed interval until it reaches a terminal state
    or the attempt budget runs out.
    """

    def __init__(
        self,
        client: GitLabClient,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        environment_variable: Optional[str] = None,
    ):
        self.client = client
        self.poll_interval = settings.pipeline_poll_interval if poll_interval is None else poll_interval
        self.max_attempts = settings.pipeline_max_attempts if max_attempts is None else max_attempts
        self.environment_variable = environment_variable or settings.pipeline_environment_variable

    async def trigger(
        self,
        service: Service,
        branch: str,
        environment: Optional[str] = None,
        extra_variables: Optional[Dict[str, str]] = None,
        progress: Optional[ProgressStream] = None,
    ) -> bool:
        """Create a pipeline for ``branch`` and wait for it to finish.

        Returns:
            True if the pipeline succeeded, False if it failed or was canceled

        Raises:
            ConfigurationError: service has no GitLab project id
            GitLabAPIError: the pipeline could not be created
            PipelineTimeoutError: no terminal state within the polling budget
        """
        progress = progress or ProgressStream(service=service.name, environment=environment)
        if service.project_id is None:
            raise ConfigurationError(
                f"Service {service.name} has no GitLab project id",
                config_key="project_id",
            )

        variables: Dict[str, str] = {}
        if environment:
            variables[self.environment_variable] = environment
        variables.update(extra_variables or {})

        target = f"environment={environment}" if environment else "build only"
        progress.info(
            f"Triggering GitLab pipeline: project={service.project_id}, branch={branch}, {target}"
        )

        try:
            pipeline = await self.client.create_pipeline(service.project_id, branch, variables)
        except GitLabAPIError as e:
            progress.error(f"Failed to create pipeline: {e}")
            raise

        progress.info(f"Pipeline created, id={pipeline.id}")
        return await self._monitor(service.project_id, pipeline.id, progress)

    async def _monitor(self, project_id, pipeline_id: int, progress: ProgressStream) -> bool:
        progress.info("Monitoring pipeline status...")
        log = logger.bind(project_id=project_id, pipeline_id=pipeline_id)
        cursors = LogProcessor()

        for attempt in range(1, self.max_attempts + 1):
            try:
                pipeline = await self.client.get_pipeline(project_id, pipeline_id)
            except GitLabAPIError as e:
                log.warning("Pipeline poll failed, retrying", attempt=attempt, error=str(e))
                progress.error(f"Failed to fetch pipeline status: {e}")
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.poll_interval)
                continue

            progress.info(f"=== check {attempt}: status {pipeline.status.value} ===")

            try:
                jobs = await self.client.get_pipeline_jobs(project_id, pipeline_id)
            except GitLabAPIError as e:
                log.warning("Job list unavailable", attempt=attempt, error=str(e))
                progress.error(f"Failed to fetch pipeline jobs: {e}")
                jobs = []

            for job in jobs:
                if not job.has_started:
                    continue
                progress.info(f"[job {job.name} | status {job.status.value}]", job=job.name)
                try:
                    trace = await self.client.get_job_trace(project_id, job.id)
                except GitLabAPIError as e:
                    log.debug("Job trace unavailable", job_id=job.id, error=str(e))
                    continue
                new_output = cursors.consume(job.id, trace)
                if new_output:
                    progress.info(new_output, job=job.name)

            if pipeline.status.is_terminal:
                log.info("Pipeline finished", status=pipeline.status.value, attempts=attempt)
                if pipeline.status == PipelineStatus.SUCCESS:
                    progress.info("Pipeline succeeded")
                    return True
                progress.error(f"Pipeline {pipeline.status.value}")
                return False

            if attempt < self.max_attempts:
                await asyncio.sleep(self.poll_interval)

        progress.error(f"Pipeline {pipeline_id} did not finish after {self.max_attempts} checks")
        raise PipelineTimeoutError(
            f"Pipeline {pipeline_id} timed out after {self.max_attempts} checks",
            project_id=project_id,
            pipeline_id=pipeline_id,
            attempts=self.max_attempts,
        )

    async def last_successful_run_time(
        self,
        service: Service,
        branch: str,
        progress: Optional[ProgressStream] = None,
    ) -> Optional[datetime]:
        """Return when the last successful pipeline of ``branch`` was updated.

        Returns:
            The timestamp, or None when the branch never built successfully

        Raises:
            ProviderError: the API call failed or the timestamp is unreadable
        """
        progress = progress or ProgressStream(service=service.name)
        if service.project_id is None:
            raise ConfigurationError(
                f"Service {service.name} has no GitLab project id",
                config_key="project_id",
            )

        try:
            pipeline = await self.client.get_latest_successful_pipeline(service.project_id, branch)
            if pipeline is None:
                progress.info(f"GitLab pipeline {branch}: no successful build found")
                return None
            built_at = parse_gitlab_timestamp(pipeline.updated_at or "")
        except ProviderError as e:
            progress.error(f"Failed to read last build time: {e}")
            raise

        progress.info(f"GitLab pipeline {branch}: last build time {format_local(built_at)}")
        return built_at
