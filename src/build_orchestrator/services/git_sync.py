"""Git operations on the local working copy of a service."""

import asyncio
from datetime import datetime
from typing import Optional

import structlog
from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from ..core.config import settings
from ..core.exceptions import GitOpError
from ..models.build import Service
from ..utils.timestamps import format_local, from_unix_seconds
from .progress import ProgressStream

logger = structlog.get_logger(__name__)


class GitSyncOperator:
    """Fetch, merge and push branches of service working copies.

    Working copies are not safe for concurrent mutation; callers run these
    operations one service at a time. GitPython calls block, so each git
    command runs in a worker thread.
    """

    def __init__(self, remote: Optional[str] = None):
        self.remote = remote or settings.git_remote

    def _open_repo(self, service: Service) -> Repo:
        """Open the working copy of a service.

        Raises:
            GitOpError: path missing or not a git working copy
        """
        if not service.git_repo_path or not service.git_repo_path.strip():
            raise GitOpError(f"{service.name}: no git repository path configured")

        try:
            return Repo(service.git_repo_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitOpError(f"{service.name}: invalid git repository path: {service.git_repo_path}") from e

    async def _git(self, repo: Repo, command: str, *args: str) -> str:
        """Run one git command and return its output.

        Raises:
            GitOpError: the command exited non-zero or could not be started
        """
        display = " ".join(("git", command) + args)
        logger.debug("Running git command", repo=repo.working_dir, command=display)

        try:
            return await asyncio.to_thread(getattr(repo.git, command), *args)
        except GitCommandError as e:
            output = f"{e.stdout or ''}{e.stderr or ''}".strip()
            logger.debug("Git command failed", repo=repo.working_dir, command=display, exit_code=e.status)
            raise GitOpError(f"Git command failed: {display}", command=display, output=output) from e

    async def merge_and_push(
        self,
        service: Service,
        feature_branch: str,
        build_branch: str,
        progress: Optional[ProgressStream] = None,
    ) -> None:
        """Merge ``origin/<feature_branch>`` into ``build_branch`` and push it.

        A failed merge is aborted and the working tree hard-reset so the
        repository is left clean on the build branch.

        Raises:
            GitOpError: on the first failing step
        """
        progress = progress or ProgressStream(service=service.name)
        log = logger.bind(service=service.name, feature_branch=feature_branch, build_branch=build_branch)

        try:
            repo = self._open_repo(service)
        except GitOpError as e:
            progress.error(str(e))
            raise

        progress.info(f"Git operations in {repo.working_dir}")
        remote = self.remote

        try:
            progress.info("Fetching...")
            await self._git(repo, "fetch", remote)

            progress.info(f"Checking out {build_branch}...")
            try:
                await self._git(repo, "checkout", build_branch)
            except GitOpError:
                await self._git(repo, "checkout", "-b", build_branch, f"{remote}/{build_branch}")

            progress.info("Pulling...")
            await self._git(repo, "pull", remote, build_branch)

            progress.info(f"Merging {feature_branch}...")
            try:
                await self._git(
                    repo,
                    "merge",
                    f"{remote}/{feature_branch}",
                    "--no-ff",
                    "-m",
                    f"Merge branch {feature_branch} into {build_branch}",
                )
            except GitOpError as e:
                progress.error(f"Merge failed: {e}")
                await self._clean_up_merge(repo, progress)
                raise

            progress.info("Pushing...")
            await self._git(repo, "push", remote, build_branch)
        except GitOpError as e:
            log.warning("Git merge and push failed", command=e.command)
            progress.error(f"Git operation failed: {e.message}")
            raise
        finally:
            repo.close()

        log.info("Merged and pushed")
        progress.info("Merge and push succeeded")

    async def _clean_up_merge(self, repo: Repo, progress: ProgressStream) -> None:
        progress.info("Cleaning up merge state...")
        try:
            await self._git(repo, "merge", "--abort")
        except GitOpError as e:
            # Nothing to abort when the merge never started (e.g. unknown branch)
            logger.debug("merge --abort failed", repo=repo.working_dir, output=e.output)
        try:
            await self._git(repo, "reset", "--hard", "HEAD")
        except GitOpError as e:
            progress.error(f"Cleanup failed: {e}")

    async def last_commit_time(
        self,
        service: Service,
        branch: str,
        progress: Optional[ProgressStream] = None,
    ) -> Optional[datetime]:
        """Time of the last commit on ``<remote>/<branch>``, or None if unknown."""
        progress = progress or ProgressStream(service=service.name)
        try:
            repo = self._open_repo(service)
        except GitOpError as e:
            logger.debug("Last commit time unavailable", service=service.name, branch=branch, error=str(e))
            progress.error(f"Could not read last commit time: {e.message}")
            return None

        try:
            output = await self._git(repo, "log", f"{self.remote}/{branch}", "-1", "--format=%ct")
        except GitOpError as e:
            logger.debug("Last commit time unavailable", service=service.name, branch=branch, error=str(e))
            progress.error(f"Could not read last commit time: {e.message}")
            return None
        finally:
            repo.close()

        try:
            committed_at = from_unix_seconds(int(output.strip()))
        except ValueError:
            return None

        progress.info(f"{service.git_repo_path}:{branch}: last commit time {format_local(committed_at)}")
        return committed_at
