"""Build orchestration: merge, staleness check, serial API builds, concurrent builds."""

import asyncio
from typing import Dict, List, Optional, Tuple

import structlog

from ..core.config import settings
from ..core.exceptions import (
    ConfigurationError,
    GitOpError,
    OrchestrationError,
    PipelineTimeoutError,
    ProviderError,
)
from ..models.build import (
    BuildMode,
    BuildReport,
    BuildRequest,
    OutcomeStatus,
    Service,
)
from .execution_pool import ExecutionPool
from .git_sync import GitSyncOperator
from .pipeline_provider import PipelineProvider
from .progress import ProgressSink, ProgressStream

logger = structlog.get_logger(__name__)

BANNER = "=" * 51


class BuildAborted(Exception):
    """Internal signal that the API lane failed and the run must stop."""


class BuildOrchestrator:
    """Runs one build request end to end.

    API services are built first, one at a time, because everything else
    depends on them. Regular services are then built for every target
    environment through a bounded pool.
    """

    def __init__(
        self,
        provider: PipelineProvider,
        git: Optional[GitSyncOperator] = None,
        sink: Optional[ProgressSink] = None,
        max_workers: Optional[int] = None,
        queue_capacity: Optional[int] = None,
    ):
        self.provider = provider
        self.git = git or GitSyncOperator()
        self.progress = ProgressStream(sink)
        self.max_workers = max_workers or settings.build_pool_workers
        self.queue_capacity = queue_capacity or settings.build_queue_capacity
        self._stop_requested = False

    def request_stop(self) -> None:
        """Stop starting new builds; builds already running finish on their own."""
        self._stop_requested = True
        logger.info("Stop requested")

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @staticmethod
    def validate(request: BuildRequest) -> None:
        """Check a request before anything runs.

        Raises:
            ConfigurationError: the request cannot be executed
        """
        if not request.services or not request.environments:
            raise ConfigurationError("No projects or environments selected", config_key="selection")
        if not request.build_branch or not request.build_branch.strip():
            raise ConfigurationError("Build branch is required", config_key="build_branch")
        if request.mode == BuildMode.MERGE:
            if not request.feature_branch or not request.feature_branch.strip():
                raise ConfigurationError(
                    "Feature branch is required to merge before building",
                    config_key="feature_branch",
                )
        elif request.feature_branch and request.feature_branch.strip():
            raise ConfigurationError(
                "Feature branch is only used when merging before building",
                config_key="feature_branch",
            )

        seen = set()
        for service in request.services:
            if service.name in seen:
                raise ConfigurationError(f"Duplicate service name: {service.name}", config_key="services")
            seen.add(service.name)
        for environment in request.environments:
            if not environment or not environment.strip():
                raise ConfigurationError("Environment names must not be blank", config_key="environments")

    async def run(self, request: BuildRequest) -> BuildReport:
        """Execute a build request and return the aggregated report.

        Raises:
            ConfigurationError: the request is invalid; nothing was started
        """
        self.validate(request)
        environments = list(dict.fromkeys(request.environments))
        report = BuildReport()
        log = logger.bind(build_branch=request.build_branch, mode=request.mode.value)

        api_services = request.api_services
        regular_services = request.regular_services

        try:
            if request.mode == BuildMode.MERGE:
                self.progress.system(f"{BANNER}\nGit merge build started")
                self.progress.info(f"Feature branch: {request.feature_branch}")
                self.progress.info(f"Build branch: {request.build_branch}")
                api_services = await self._select_services(request, api_services, report, api_lane=True)
                regular_services = await self._select_services(request, regular_services, report, api_lane=False)

            self._print_banner(request.build_branch, api_services, regular_services, environments)

            if api_services:
                self.progress.system("[step 1] Building API services...")
                await self._build_api_services(request.build_branch, api_services, report)

            if regular_services:
                self.progress.system("[step 2] Building services in parallel...")
                await self._build_regular_services(request, regular_services, environments, report)
        except BuildAborted as e:
            report.aborted = True
            report.error = str(e)
            self.progress.error(f"Build aborted: {e}")
            log.warning("Build aborted", error=str(e))

        self.progress.system(f"{BANNER}\nBuild finished")
        log.info(
            "Build finished",
            succeeded=report.succeeded,
            aborted=report.aborted,
            outcomes=len(report.outcomes),
            failed=len(report.failed),
        )
        return report

    def _print_banner(
        self,
        branch: str,
        api_services: List[Service],
        regular_services: List[Service],
        environments: List[str],
    ) -> None:
        self.progress.system(f"{BANNER}\nBuild started")
        self.progress.info(f"Build branch: {branch}")
        self.progress.info(f"API services: {[service.name for service in api_services]}")
        self.progress.info(f"Regular services: {[service.name for service in regular_services]}")
        self.progress.info(f"Target environments: {', '.join(environments)}")
        self.progress.system(BANNER)

    async def _select_services(
        self,
        request: BuildRequest,
        services: List[Service],
        report: BuildReport,
        api_lane: bool,
    ) -> List[Service]:
        """Merge the feature branch and keep services whose branch moved since the last build.

        Runs serially: git working copies must never be touched concurrently.
        """
        selected: List[Service] = []
        build_branch = request.build_branch

        for service in services:
            progress = self.progress.bind(service=service.name)
            if self._stop_requested:
                report.add(service, OutcomeStatus.SKIPPED, "abandoned before staleness check")
                continue
            if service.project_id is None:
                progress.error(f"! {service.name}: missing project id, skipping merge check")
                report.add(service, OutcomeStatus.SKIPPED, "missing GitLab project id")
                continue

            if request.feature_branch:
                progress.info(f"-> Merging {service.name}: {request.feature_branch} -> {build_branch}")
                try:
                    await self.git.merge_and_push(service, request.feature_branch, build_branch, progress=progress)
                except GitOpError as e:
                    if api_lane:
                        report.add(service, OutcomeStatus.FAILED, f"merge failed: {e.message}")
                        raise BuildAborted(f"API service {service.name} could not be merged: {e.message}") from e
                    report.add(service, OutcomeStatus.SKIPPED, f"merge failed: {e.message}")
                    continue

            last_commit = await self.git.last_commit_time(service, build_branch, progress=progress)
            try:
                last_build = await self.provider.last_successful_run_time(service, build_branch, progress=progress)
            except ProviderError as e:
                progress.error(f"x {service.name}: could not read last build time, skipping build")
                report.add(service, OutcomeStatus.SKIPPED, f"staleness check failed: {e.message}")
                continue

            if needs_build(last_commit, last_build):
                selected.append(service)
                progress.info(f"v {service.name}: build required (code changed)")
            elif last_commit is None:
                progress.info(f"- {service.name}: no build required (last commit time unknown)")
                report.add(service, OutcomeStatus.UP_TO_DATE, "last commit time unknown")
            else:
                progress.info(f"- {service.name}: no build required (code unchanged)")
                report.add(service, OutcomeStatus.UP_TO_DATE, "no commits since last successful build")

        return selected

    async def _build_api_services(self, branch: str, services: List[Service], report: BuildReport) -> None:
        for service in services:
            progress = self.progress.bind(service=service.name)
            if self._stop_requested:
                report.add(service, OutcomeStatus.SKIPPED, "abandoned before build")
                continue
            if service.project_id is None:
                progress.error(f"x {service.name}: missing project id")
                report.add(service, OutcomeStatus.FAILED, "missing GitLab project id")
                raise BuildAborted(f"API service {service.name} has no project id")

            progress.info(f"-> Building {service.name}...")
            succeeded, message = await self._trigger(service, branch, None, {}, progress)
            if not succeeded:
                progress.error(f"x {service.name} build failed")
                report.add(service, OutcomeStatus.FAILED, message)
                raise BuildAborted(f"API service {service.name} build failed: {message}")

            progress.info(f"v {service.name} build succeeded")
            report.add(service, OutcomeStatus.SUCCEEDED, message)

    async def _build_regular_services(
        self,
        request: BuildRequest,
        services: List[Service],
        environments: List[str],
        report: BuildReport,
    ) -> None:
        submitted: List[Tuple[Service, str, asyncio.Future]] = []

        async with ExecutionPool(self.max_workers, self.queue_capacity) as pool:
            for service in services:
                if service.project_id is None:
                    self.progress.error(f"x {service.name}: missing project id, skipping")
                    report.add(service, OutcomeStatus.SKIPPED, "missing GitLab project id")
                    continue

                for environment in environments:
                    if self._stop_requested:
                        report.add(service, OutcomeStatus.SKIPPED, "abandoned before submission", environment)
                        continue
                    progress = self.progress.bind(service=service.name, environment=environment)
                    variables = self.resolve_variables(request, environment)
                    progress.info(f"-> Submitting {service.name} >>> {environment}")
                    future = await pool.submit(
                        self._trigger, service, request.build_branch, environment, variables, progress
                    )
                    submitted.append((service, environment, future))

            self.progress.system("[step 3] Waiting for all builds to finish...")
            for service, environment, future in submitted:
                label = f"{service.name} >>> {environment}"
                try:
                    succeeded, message = await future
                except Exception as e:
                    logger.exception("Build task crashed", service=service.name, environment=environment)
                    succeeded, message = False, f"build task error: {e}"

                if succeeded:
                    self.progress.info(f"v {label} build succeeded")
                    report.add(service, OutcomeStatus.SUCCEEDED, message, environment)
                else:
                    self.progress.error(f"x {label} build failed: {message}")
                    report.add(service, OutcomeStatus.FAILED, message, environment)

    def resolve_variables(self, request: BuildRequest, environment: str) -> Dict[str, str]:
        """Pipeline variables for one environment, always including the environment marker."""
        variables = request.variables.for_environment(environment)
        variables.setdefault(self.provider.environment_variable, environment)
        return variables

    async def _trigger(
        self,
        service: Service,
        branch: str,
        environment: Optional[str],
        variables: Dict[str, str],
        progress: ProgressStream,
    ) -> Tuple[bool, str]:
        """Trigger one pipeline and turn every failure into a message."""
        try:
            succeeded = await self.provider.trigger(
                service, branch, environment, variables, progress=progress
            )
        except PipelineTimeoutError as e:
            return False, f"timed out: {e.message}"
        except ProviderError as e:
            return False, f"pipeline could not be triggered: {e.message}"
        except OrchestrationError as e:
            return False, e.message

        if succeeded:
            return True, "pipeline succeeded"
        return False, "pipeline failed or was canceled"


def needs_build(last_commit, last_build) -> bool:
    """Decide whether a branch changed since its last successful pipeline.

    Equal timestamps mean the last build already covers the commit.
    """
    if last_build is None:
        return True
    return last_commit is not None and last_commit > last_build
