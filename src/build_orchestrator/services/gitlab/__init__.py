"""
GitLab API client modules.

This package provides modular GitLab API client functionality:
- GitLabClient: Main unified client interface
- BaseClient: HTTP connection and session management
- PipelineOperations: Pipeline-related API operations
- JobOperations: Job-related API operations
- LogProcessor: Incremental job log tracking
- GitLabAPIError: Exception handling (from core.exceptions)
"""

from .client import GitLabClient
from .log_processor import LogProcessor
from ...core.exceptions import GitLabAPIError

__all__ = ["GitLabClient", "GitLabAPIError", "LogProcessor"]
