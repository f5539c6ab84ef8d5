"""Unified GitLab API client combining all operations."""

from .jobs import JobOperations
from .pipelines import PipelineOperations


class GitLabClient(PipelineOperations, JobOperations):
    """Unified GitLab API client with all operations.

    Pipeline and job operations share one HTTP session.
    """

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
