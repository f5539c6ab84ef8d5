"""Job-related GitLab API operations."""

from typing import Union

import structlog

from .base_client import BaseClient

logger = structlog.get_logger(__name__)


class JobOperations(BaseClient):
    """Job-related GitLab API operations."""

    async def get_job_trace(self, project_id: Union[int, str], job_id: int) -> str:
        """Get the full log of a job.

        GitLab has no incremental trace endpoint, so the whole log is returned
        on every call.

        Args:
            project_id: Project ID or path with namespace
            job_id: Job ID

        Returns:
            Plain-text job log
        """
        endpoint = f"{self._project_path(project_id)}/jobs/{job_id}/trace"
        return await self._get_text(endpoint)
