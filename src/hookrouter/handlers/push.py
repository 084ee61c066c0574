"""Handler for push events.

Push events have no action. The handler branches on the pushed ref:

- main/master: report which server packages the commits touch
- release/<version>: dispatch the release workflow on that branch

and for every push logs commits that touch build or workflow files.
"""

import logging
from typing import Any, Dict, List

from ..github.client import GitHubAPIError
from ..webhook.models import EventEnvelope
from .base import EventHandler, affected_servers, commit_files

logger = logging.getLogger(__name__)

MAIN_BRANCHES = ("main", "master")
RELEASE_BRANCH_PREFIX = "release/"
RELEASE_WORKFLOW = "release.yml"

IMPORTANT_FILES = (
    "package.json",
    "pyproject.toml",
    ".github/workflows/",
    "README.md",
)


def branch_from_ref(ref: str) -> str:
    return ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref


def important_changes(paths: List[str]) -> List[str]:
    return [p for p in paths if any(marker in p for marker in IMPORTANT_FILES)]


class PushHandler(EventHandler):
    """Reacts to branch pushes."""

    event_type = "push"

    async def handle(self, envelope: EventEnvelope) -> None:
        payload = envelope.payload
        branch = branch_from_ref(payload.get("ref") or "")
        commits = payload.get("commits") or []

        logger.info(
            "Processing push event",
            extra={
                "repository": envelope.repository,
                "branch": branch,
                "commits_count": len(commits),
                "pusher": (payload.get("pusher") or {}).get("name"),
                "delivery_id": envelope.delivery_id,
            },
        )

        if branch in MAIN_BRANCHES:
            await self._handle_main_branch_push(envelope, commits)

        if branch.startswith(RELEASE_BRANCH_PREFIX):
            await self._handle_release_branch_push(envelope, branch)

        self._log_important_file_changes(envelope, commits)

    async def _handle_main_branch_push(
        self,
        envelope: EventEnvelope,
        commits: List[Dict[str, Any]],
    ) -> None:
        servers = affected_servers(
            path for commit in commits for path in commit_files(commit)
        )
        if not servers:
            return

        logger.info(
            "Server packages affected by push",
            extra={"repository": envelope.repository, "servers": servers},
        )

        if not self.api.available:
            return
        for server in servers:
            logger.info("Would trigger tests for server: %s", server)

    async def _handle_release_branch_push(
        self,
        envelope: EventEnvelope,
        branch: str,
    ) -> None:
        version = branch[len(RELEASE_BRANCH_PREFIX):]
        logger.info(
            "Release branch push detected",
            extra={"repository": envelope.repository, "branch": branch, "version": version},
        )

        if not self.api.available:
            logger.info(
                "Skipping release workflow dispatch: no GitHub token configured",
                extra={"branch": branch},
            )
            return

        target = self.api_target(envelope)
        if target is None:
            return
        owner, repo = target
        try:
            await self.api.create_workflow_dispatch(owner, repo, RELEASE_WORKFLOW, branch)
        except GitHubAPIError as e:
            logger.error(
                "Failed to trigger release workflow: %s",
                e,
                extra={"branch": branch},
            )
            return

        logger.info(
            "Triggered release workflow",
            extra={"branch": branch, "version": version},
        )

    def _log_important_file_changes(
        self,
        envelope: EventEnvelope,
        commits: List[Dict[str, Any]],
    ) -> None:
        for commit in commits:
            changes = important_changes(commit_files(commit))
            if changes:
                logger.info(
                    "Important files changed in commit",
                    extra={
                        "commit": commit.get("id"),
                        "files": changes,
                        "repository": envelope.repository,
                    },
                )
