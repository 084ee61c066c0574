"""Platform API capability injected into event handlers.

Handlers never hold a GitHubClient directly. They receive a PlatformAPI,
which comes in two variants:

- GitHubPlatformAPI: a token is configured; calls go to the REST API
- NullPlatformAPI: no token; every call logs that it was skipped and
  returns an empty result

Handlers can check ``available`` to skip work that only matters when the
API is reachable. Calling the null variant is always safe.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .client import GitHubClient

logger = logging.getLogger(__name__)


class PlatformAPI(ABC):
    """Operations handlers may perform against the hosting platform."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether calls reach the platform."""

    @abstractmethod
    async def list_pull_request_files(
        self, owner: str, repo: str, pr_number: int
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_pull_requests(
        self, owner: str, repo: str, state: str = "all"
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_issues(
        self, owner: str, repo: str, creator: Optional[str] = None, state: str = "all"
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: List[str]
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def create_workflow_dispatch(
        self, owner: str, repo: str, workflow_id: str, ref: str
    ) -> None:
        ...

    @abstractmethod
    async def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def list_releases(
        self, owner: str, repo: str, per_page: int = 30
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_workflow_run_jobs(
        self, owner: str, repo: str, run_id: int
    ) -> List[Dict[str, Any]]:
        ...

    async def close(self) -> None:
        """Release resources. The default implementation does nothing."""
        pass


class GitHubPlatformAPI(PlatformAPI):
    """PlatformAPI backed by the GitHub REST API."""

    def __init__(self, client: GitHubClient):
        self.client = client

    @property
    def available(self) -> bool:
        return True

    async def list_pull_request_files(self, owner, repo, pr_number):
        return await self.client.list_pull_request_files(owner, repo, pr_number)

    async def list_pull_requests(self, owner, repo, state="all"):
        return await self.client.list_pull_requests(owner, repo, state=state)

    async def list_issues(self, owner, repo, creator=None, state="all"):
        return await self.client.list_issues(owner, repo, creator=creator, state=state)

    async def add_labels(self, owner, repo, issue_number, labels):
        return await self.client.add_labels(owner, repo, issue_number, labels)

    async def create_comment(self, owner, repo, issue_number, body):
        return await self.client.create_comment(owner, repo, issue_number, body)

    async def create_workflow_dispatch(self, owner, repo, workflow_id, ref):
        await self.client.create_workflow_dispatch(owner, repo, workflow_id, ref)

    async def compare_commits(self, owner, repo, base, head):
        return await self.client.compare_commits(owner, repo, base, head)

    async def list_releases(self, owner, repo, per_page=30):
        return await self.client.list_releases(owner, repo, per_page=per_page)

    async def list_workflow_run_jobs(self, owner, repo, run_id):
        return await self.client.list_workflow_run_jobs(owner, repo, run_id)

    async def close(self) -> None:
        await self.client.close()


class NullPlatformAPI(PlatformAPI):
    """PlatformAPI used when no GitHub token is configured.

    Every operation is a logged no-op, so handlers degrade instead of
    failing the delivery.
    """

    @property
    def available(self) -> bool:
        return False

    def _skip(self, operation: str, owner: str, repo: str) -> None:
        logger.info(
            "Skipping %s: no GitHub token configured",
            operation,
            extra={"operation": operation, "owner": owner, "repo": repo},
        )

    async def list_pull_request_files(self, owner, repo, pr_number):
        self._skip("list_pull_request_files", owner, repo)
        return []

    async def list_pull_requests(self, owner, repo, state="all"):
        self._skip("list_pull_requests", owner, repo)
        return []

    async def list_issues(self, owner, repo, creator=None, state="all"):
        self._skip("list_issues", owner, repo)
        return []

    async def add_labels(self, owner, repo, issue_number, labels):
        self._skip("add_labels", owner, repo)
        return []

    async def create_comment(self, owner, repo, issue_number, body):
        self._skip("create_comment", owner, repo)
        return {}

    async def create_workflow_dispatch(self, owner, repo, workflow_id, ref):
        self._skip("create_workflow_dispatch", owner, repo)

    async def compare_commits(self, owner, repo, base, head):
        self._skip("compare_commits", owner, repo)
        return {}

    async def list_releases(self, owner, repo, per_page=30):
        self._skip("list_releases", owner, repo)
        return []

    async def list_workflow_run_jobs(self, owner, repo, run_id):
        self._skip("list_workflow_run_jobs", owner, repo)
        return []


def create_platform_api(
    token: Optional[str],
    base_url: str = "https://api.github.com",
) -> PlatformAPI:
    """Pick the PlatformAPI variant for the configured credential.

    Args:
        token: GitHub API token, or None/empty when not configured.
        base_url: Base URL for GitHub API.

    Returns:
        GitHubPlatformAPI when a token is set, NullPlatformAPI otherwise.
    """
    if token and token.strip():
        return GitHubPlatformAPI(GitHubClient(token=token, base_url=base_url))
    logger.warning("No GitHub token configured; handlers run without API access")
    return NullPlatformAPI()
