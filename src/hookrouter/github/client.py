"""GitHub REST API client used by the event handlers.

This module provides an async wrapper around the GitHub API for:
- Listing files changed by a pull request
- Listing pull requests, issues and releases
- Adding labels and creating comments
- Dispatching workflows and listing workflow run jobs
- Comparing commits

Requests are made once. Retrying is left to GitHub's own webhook
redelivery: a failed call fails the handler, which yields a 500.
"""

import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class GitHubClient:
    """Async GitHub REST API client.

    The underlying httpx.AsyncClient is created lazily and shared by all
    concurrent deliveries; it is never reconfigured after creation.

    Attributes:
        token: GitHub API token (PAT or GitHub App token).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        timeout: Request timeout in seconds.

    Example:
        >>> client = GitHubClient(token="ghp_xxx")
        >>> async with client:
        ...     await client.create_comment("owner", "repo", 123, "Hello!")
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            timeout: Request timeout in seconds.
            http_client: Optional preconfigured httpx client, mainly for
                         tests. Default headers are still sent per request.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "hookrouter/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _parse_int_header(
        self,
        headers: httpx.Headers,
        name: str,
    ) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        """Build a RateLimitError from a rate-limited response."""
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={
                "reset_at": reset_at,
                "retry_after": retry_after,
                "path": response.request.url.path,
            },
        )

        message = "GitHub API rate limit exceeded"
        if retry_after is not None:
            message = f"{message}, retry after {retry_after}s"

        return RateLimitError(
            message=message,
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.request.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a single HTTP request to the GitHub API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH).
            path: API path (e.g., /repos/owner/repo/issues/1/comments).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The HTTP response from GitHub.

        Raises:
            RateLimitError: If the rate limit is exceeded.
            GitHubAPIError: If the request fails or GitHub returns an error.
        """
        try:
            response = await self.client.request(
                method=method,
                url=f"{self.base_url}{path}",
                json=json_data,
                params=params,
                headers=self._default_headers(),
            )
        except httpx.RequestError as e:
            logger.error(
                "GitHub API request error",
                extra={"path": path, "method": method, "error": str(e)},
            )
            raise GitHubAPIError(
                message=f"Request to GitHub API failed: {e}",
                request_url=f"{self.base_url}{path}",
            ) from e

        if response.status_code == 429:
            raise self._rate_limit_error(response)

        if response.status_code == 403:
            remaining = self._parse_int_header(
                response.headers,
                "x-ratelimit-remaining",
            )
            if remaining == 0:
                raise self._rate_limit_error(response)

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                extra={
                    "status_code": response.status_code,
                    "path": path,
                    "method": method,
                    "response_body": error_body[:500],
                },
            )
            raise GitHubAPIError(
                message=f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.request.url),
            )

        return response

    async def list_pull_request_files(
        self,
        owner: str,
        repo: str,
        pr_number: int,
    ) -> List[Dict[str, Any]]:
        """List the files changed by a pull request (first 100).

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            pr_number: Pull request number.

        Returns:
            File entries as returned by GitHub, each with a "filename".
        """
        path = f"/repos/{owner}/{repo}/pulls/{pr_number}/files"
        response = await self._request("GET", path, params={"per_page": 100})
        return response.json()

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: str = "all",
    ) -> List[Dict[str, Any]]:
        """List pull requests in a repository (first 100)."""
        path = f"/repos/{owner}/{repo}/pulls"
        response = await self._request(
            "GET",
            path,
            params={"state": state, "per_page": 100},
        )
        return response.json()

    async def list_issues(
        self,
        owner: str,
        repo: str,
        creator: Optional[str] = None,
        state: str = "all",
    ) -> List[Dict[str, Any]]:
        """List issues in a repository, optionally filtered by creator.

        GitHub includes pull requests in this listing; they carry a
        "pull_request" key.
        """
        path = f"/repos/{owner}/{repo}/issues"
        params: Dict[str, Any] = {"state": state, "per_page": 100}
        if creator:
            params["creator"] = creator
        response = await self._request("GET", path, params=params)
        return response.json()

    async def add_labels(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        labels: List[str],
    ) -> List[Dict[str, Any]]:
        """Add labels to an issue or pull request.

        PRs use the issues API for labels since PRs are a type of issue.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue or pull request number.
            labels: Label names to add.

        Returns:
            List of all labels on the issue after adding.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/labels"

        logger.info(
            "Adding labels to issue",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "labels": labels,
            },
        )

        response = await self._request(
            "POST",
            path,
            json_data={"labels": labels},
        )
        return response.json()

    async def create_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
    ) -> Dict[str, Any]:
        """Create a comment on an issue or pull request.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue or pull request number to comment on.
            body: Comment body in markdown format.

        Returns:
            The created comment data from GitHub API.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"

        logger.info(
            "Creating comment on issue",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "body_length": len(body),
            },
        )

        response = await self._request(
            "POST",
            path,
            json_data={"body": body},
        )

        result = response.json()
        logger.info(
            "Comment created successfully",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "comment_id": result.get("id"),
            },
        )
        return result

    async def create_workflow_dispatch(
        self,
        owner: str,
        repo: str,
        workflow_id: str,
        ref: str,
        inputs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Trigger a workflow_dispatch run of a workflow.

        Args:
            owner: Repository owner.
            repo: Repository name.
            workflow_id: Workflow file name (e.g. "release.yml") or id.
            ref: Branch or tag to run the workflow on.
            inputs: Optional workflow inputs.
        """
        path = f"/repos/{owner}/{repo}/actions/workflows/{quote(workflow_id, safe='')}/dispatches"
        payload: Dict[str, Any] = {"ref": ref}
        if inputs:
            payload["inputs"] = inputs

        logger.info(
            "Dispatching workflow",
            extra={"owner": owner, "repo": repo, "workflow_id": workflow_id, "ref": ref},
        )

        await self._request("POST", path, json_data=payload)

    async def compare_commits(
        self,
        owner: str,
        repo: str,
        base: str,
        head: str,
    ) -> Dict[str, Any]:
        """Compare two commits, branches or tags."""
        path = f"/repos/{owner}/{repo}/compare/{quote(base, safe='')}...{quote(head, safe='')}"
        response = await self._request("GET", path)
        return response.json()

    async def list_releases(
        self,
        owner: str,
        repo: str,
        per_page: int = 30,
    ) -> List[Dict[str, Any]]:
        """List releases, newest first."""
        path = f"/repos/{owner}/{repo}/releases"
        response = await self._request("GET", path, params={"per_page": per_page})
        return response.json()

    async def list_workflow_run_jobs(
        self,
        owner: str,
        repo: str,
        run_id: int,
    ) -> List[Dict[str, Any]]:
        """List the jobs of a workflow run.

        Returns:
            The "jobs" array of the GitHub response.
        """
        path = f"/repos/{owner}/{repo}/actions/runs/{run_id}/jobs"
        response = await self._request("GET", path)
        return response.json().get("jobs", [])
