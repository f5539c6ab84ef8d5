"""Business services and external clients.

This module contains:
- Build orchestration (build_orchestrator.py)
- GitLab pipeline triggering and monitoring (pipeline_provider.py)
- Git working copy operations (git_sync.py)
- The bounded worker pool used for concurrent builds (execution_pool.py)
- GitLab REST client (gitlab/)
"""

from .build_orchestrator import BuildOrchestrator
from .execution_pool import ExecutionPool
from .git_sync import GitSyncOperator
from .gitlab import GitLabAPIError, GitLabClient
from .pipeline_provider import PipelineProvider
from .progress import ProgressKind, ProgressLine, ProgressRecorder, ProgressStream

__all__ = [
    "BuildOrchestrator",
    "ExecutionPool",
    "GitSyncOperator",
    "GitLabAPIError",
    "GitLabClient",
    "PipelineProvider",
    "ProgressKind",
    "ProgressLine",
    "ProgressRecorder",
    "ProgressStream",
]
