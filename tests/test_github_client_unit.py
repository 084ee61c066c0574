"""Unit tests for GitHubClient using httpx.MockTransport."""

import asyncio
import json
from typing import List

import httpx
import pytest

from hookrouter.github.client import GitHubAPIError, GitHubClient, RateLimitError


def run_async(coro):
    return asyncio.run(coro)


def make_client(handler, requests: List[httpx.Request]) -> GitHubClient:
    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return GitHubClient(token="ghp_test", http_client=http_client)


def test_list_pull_request_files_request_shape():
    requests: List[httpx.Request] = []
    client = make_client(
        lambda request: httpx.Response(200, json=[{"filename": "src/foo/a.py"}]),
        requests,
    )

    files = run_async(client.list_pull_request_files("acme", "widgets", 7))

    assert files == [{"filename": "src/foo/a.py"}]
    request = requests[0]
    assert request.method == "GET"
    assert request.url.path == "/repos/acme/widgets/pulls/7/files"
    assert request.url.params["per_page"] == "100"
    assert request.headers["authorization"] == "Bearer ghp_test"
    assert request.headers["accept"] == "application/vnd.github+json"


def test_add_labels_posts_label_list():
    requests: List[httpx.Request] = []
    client = make_client(lambda request: httpx.Response(200, json=[]), requests)

    run_async(client.add_labels("acme", "widgets", 3, ["bug", "server:fetch"]))

    assert requests[0].method == "POST"
    assert requests[0].url.path == "/repos/acme/widgets/issues/3/labels"
    assert json.loads(requests[0].content) == {"labels": ["bug", "server:fetch"]}


def test_create_workflow_dispatch_posts_ref():
    requests: List[httpx.Request] = []
    client = make_client(lambda request: httpx.Response(204), requests)

    run_async(client.create_workflow_dispatch("acme", "widgets", "release.yml", "release/1.2.0"))

    assert requests[0].url.path == "/repos/acme/widgets/actions/workflows/release.yml/dispatches"
    assert json.loads(requests[0].content) == {"ref": "release/1.2.0"}


def test_list_issues_filters_by_creator():
    requests: List[httpx.Request] = []
    client = make_client(lambda request: httpx.Response(200, json=[]), requests)

    run_async(client.list_issues("acme", "widgets", creator="octocat"))

    assert requests[0].url.params["creator"] == "octocat"
    assert requests[0].url.params["state"] == "all"


def test_list_workflow_run_jobs_unwraps_jobs():
    requests: List[httpx.Request] = []
    client = make_client(
        lambda request: httpx.Response(200, json={"total_count": 1, "jobs": [{"name": "test"}]}),
        requests,
    )

    jobs = run_async(client.list_workflow_run_jobs("acme", "widgets", 42))

    assert jobs == [{"name": "test"}]
    assert requests[0].url.path == "/repos/acme/widgets/actions/runs/42/jobs"


def test_error_status_raises_api_error():
    client = make_client(lambda request: httpx.Response(404, text="Not Found"), [])

    with pytest.raises(GitHubAPIError) as exc_info:
        run_async(client.compare_commits("acme", "widgets", "v1", "v2"))

    assert exc_info.value.status_code == 404
    assert exc_info.value.response_body == "Not Found"


def test_exhausted_rate_limit_raises_rate_limit_error():
    client = make_client(
        lambda request: httpx.Response(
            403,
            headers={"x-ratelimit-remaining": "0", "retry-after": "30"},
        ),
        [],
    )

    with pytest.raises(RateLimitError) as exc_info:
        run_async(client.list_releases("acme", "widgets"))

    assert exc_info.value.retry_after == 30
    assert str(exc_info.value) == "GitHub API rate limit exceeded, retry after 30s"


def test_forbidden_with_remaining_quota_is_plain_api_error():
    client = make_client(
        lambda request: httpx.Response(403, headers={"x-ratelimit-remaining": "10"}),
        [],
    )

    with pytest.raises(GitHubAPIError) as exc_info:
        run_async(client.list_releases("acme", "widgets"))

    assert not isinstance(exc_info.value, RateLimitError)


def test_transport_error_raises_api_error():
    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(fail, [])

    with pytest.raises(GitHubAPIError):
        run_async(client.list_pull_requests("acme", "widgets"))
