"""Shared test fixtures."""

import asyncio
from typing import Dict, List, Optional

import pytest

from build_orchestrator.core.exceptions import GitOpError
from build_orchestrator.models.build import Service
from build_orchestrator.services.progress import ProgressRecorder


class FakeProvider:
    """In-memory stand-in for PipelineProvider."""

    environment_variable = "ENV"

    def __init__(self, results=None, last_builds=None, on_trigger=None):
        self.results: Dict = results or {}
        self.last_builds: Dict = last_builds or {}
        self.on_trigger = on_trigger
        self.calls: List[tuple] = []
        self.events: List[tuple] = []

    async def trigger(self, service, branch, environment=None, extra_variables=None, progress=None):
        self.calls.append((service.name, branch, environment, dict(extra_variables or {})))
        self.events.append(("start", service.name, environment))
        if self.on_trigger is not None:
            self.on_trigger(service, environment)
        await asyncio.sleep(0)
        result = self.results.get((service.name, environment), True)
        self.events.append(("end", service.name, environment))
        if isinstance(result, Exception):
            raise result
        return result

    async def last_successful_run_time(self, service, branch, progress=None):
        value = self.last_builds.get(service.name)
        if isinstance(value, Exception):
            raise value
        return value


class FakeGit:
    """In-memory stand-in for GitSyncOperator."""

    def __init__(self, commits=None, merge_errors=()):
        self.commits: Dict = commits or {}
        self.merge_errors = set(merge_errors)
        self.merged: List[tuple] = []

    async def merge_and_push(self, service, feature_branch, build_branch, progress=None):
        self.merged.append((service.name, feature_branch, build_branch))
        if service.name in self.merge_errors:
            raise GitOpError("Git command failed: git merge", command="git merge", output="CONFLICT")

    async def last_commit_time(self, service, branch, progress=None) -> Optional[object]:
        return self.commits.get(service.name)


@pytest.fixture
def recorder() -> ProgressRecorder:
    return ProgressRecorder()


@pytest.fixture
def api_service() -> Service:
    return Service(name="user-api", git_repo_path="/repos/user-api", project_id=1, is_api_project=True)


@pytest.fixture
def web_service() -> Service:
    return Service(name="web", git_repo_path="/repos/web", project_id=2)


@pytest.fixture
def worker_service() -> Service:
    return Service(name="worker", git_repo_path="/repos/worker", project_id="group/worker")
