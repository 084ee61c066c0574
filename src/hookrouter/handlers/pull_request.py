"""Handler for pull_request events.

Actions handled:
- opened: label by changed files, list affected servers, welcome
  first-time contributors
- synchronize: list affected servers again for the new commits
- closed: log merge or close
- ready_for_review: log reviewer assignment intent

Label and comment failures are logged and do not fail the delivery.
"""

import logging
from typing import Any, Dict, List

from ..github.client import GitHubAPIError
from ..webhook.models import EventEnvelope
from .base import EventHandler, affected_servers

logger = logging.getLogger(__name__)

DEPENDENCY_FILES = ("package.json", "pyproject.toml")


def labels_for_paths(paths: List[str]) -> List[str]:
    """Labels implied by the files a pull request changes."""
    labels: List[str] = []
    if any(path.endswith(".md") for path in paths):
        labels.append("documentation")
    if any(".github/workflows" in path for path in paths):
        labels.append("ci/cd")
    labels.extend(f"server:{server}" for server in affected_servers(paths))
    if any(dep in path for path in paths for dep in DEPENDENCY_FILES):
        labels.append("dependencies")
    return labels


def affected_servers_comment(servers: List[str]) -> str:
    names = ", ".join(f"`{s}`" for s in servers)
    return (
        f"🔍 **Affected Servers**: {names}\n\n"
        "This PR modifies the server packages listed above. "
        "Please make sure they are tested accordingly."
    )


def welcome_comment(login: str) -> str:
    return (
        f"👋 Welcome, @{login}, and thank you for your first pull request!\n\n"
        "- 📋 Please check that the PR follows the contribution guidelines\n"
        "- 🧪 Run the test suite locally before pushing\n"
        "- 📝 Update the documentation if you are adding features\n"
        "- 🏷️ Labels have been added based on the files you changed\n\n"
        "A maintainer will review your PR soon."
    )


class PullRequestHandler(EventHandler):
    """Reacts to pull request lifecycle events."""

    event_type = "pull_request"

    async def handle(self, envelope: EventEnvelope) -> None:
        pull_request = envelope.payload.get("pull_request") or {}

        logger.info(
            "Processing pull request event",
            extra={
                "action": envelope.action,
                "repository": envelope.repository,
                "pr_number": pull_request.get("number"),
                "author": (pull_request.get("user") or {}).get("login"),
                "delivery_id": envelope.delivery_id,
            },
        )

        if envelope.action == "opened":
            await self._handle_opened(envelope, pull_request)
        elif envelope.action == "synchronize":
            await self._handle_synchronized(envelope, pull_request)
        elif envelope.action == "closed":
            self._handle_closed(envelope, pull_request)
        elif envelope.action == "ready_for_review":
            self._handle_ready_for_review(envelope, pull_request)
        else:
            logger.debug("Unhandled pull_request action: %s", envelope.action)

    async def _handle_opened(
        self,
        envelope: EventEnvelope,
        pull_request: Dict[str, Any],
    ) -> None:
        if not self.api.available:
            logger.info(
                "Skipping labels and comments for PR: no GitHub token configured",
                extra={"pr_number": pull_request.get("number")},
            )
            return

        target = self.api_target(envelope)
        if target is None:
            return
        owner, repo = target
        number = pull_request["number"]
        paths = await self._changed_paths(owner, repo, number)
        if paths is None:
            return

        await self._add_labels(owner, repo, number, paths)
        await self._comment_affected_servers(owner, repo, number, paths)
        await self._welcome_first_time_contributor(owner, repo, pull_request)

    async def _handle_synchronized(
        self,
        envelope: EventEnvelope,
        pull_request: Dict[str, Any],
    ) -> None:
        if not self.api.available:
            return
        target = self.api_target(envelope)
        if target is None:
            return
        owner, repo = target
        number = pull_request["number"]
        paths = await self._changed_paths(owner, repo, number)
        if paths is not None:
            await self._comment_affected_servers(owner, repo, number, paths)

    def _handle_closed(
        self,
        envelope: EventEnvelope,
        pull_request: Dict[str, Any],
    ) -> None:
        merged = bool(pull_request.get("merged"))
        base_ref = (pull_request.get("base") or {}).get("ref")
        logger.info(
            "Pull request %s",
            "merged" if merged else "closed",
            extra={
                "repository": envelope.repository,
                "pr_number": pull_request.get("number"),
                "base_branch": base_ref,
            },
        )
        if merged and base_ref == "main":
            logger.info("PR merged to main branch, considering release impact")

    def _handle_ready_for_review(
        self,
        envelope: EventEnvelope,
        pull_request: Dict[str, Any],
    ) -> None:
        logger.info(
            "Pull request ready for review",
            extra={
                "repository": envelope.repository,
                "pr_number": pull_request.get("number"),
            },
        )

    async def _changed_paths(self, owner: str, repo: str, number: int):
        try:
            files = await self.api.list_pull_request_files(owner, repo, number)
        except GitHubAPIError as e:
            logger.error(
                "Failed to list PR files: %s", e, extra={"pr_number": number}
            )
            return None
        return [f.get("filename", "") for f in files]

    async def _add_labels(
        self, owner: str, repo: str, number: int, paths: List[str]
    ) -> None:
        labels = labels_for_paths(paths)
        if not labels:
            return
        try:
            await self.api.add_labels(owner, repo, number, labels)
        except GitHubAPIError as e:
            logger.error(
                "Failed to add labels to PR: %s", e, extra={"pr_number": number}
            )
            return
        logger.info("Added labels to PR", extra={"pr_number": number, "labels": labels})

    async def _comment_affected_servers(
        self, owner: str, repo: str, number: int, paths: List[str]
    ) -> None:
        servers = affected_servers(paths)
        if not servers:
            return
        logger.info(
            "PR affects server packages",
            extra={"pr_number": number, "servers": servers},
        )
        try:
            await self.api.create_comment(
                owner, repo, number, affected_servers_comment(servers)
            )
        except GitHubAPIError as e:
            logger.error(
                "Failed to comment affected servers: %s", e, extra={"pr_number": number}
            )

    async def _welcome_first_time_contributor(
        self, owner: str, repo: str, pull_request: Dict[str, Any]
    ) -> None:
        login = (pull_request.get("user") or {}).get("login")
        if not login:
            return
        number = pull_request["number"]
        try:
            pulls = await self.api.list_pull_requests(owner, repo, state="all")
            authored = [
                p for p in pulls if (p.get("user") or {}).get("login") == login
            ]
            if len(authored) != 1:
                return
            await self.api.create_comment(owner, repo, number, welcome_comment(login))
        except GitHubAPIError as e:
            logger.error(
                "Failed to add welcome comment: %s", e, extra={"pr_number": number}
            )
            return
        logger.info(
            "Added welcome comment for first-time contributor",
            extra={"pr_number": number, "author": login},
        )
