"""GitHub API access for event handlers.

Handlers use the PlatformAPI capability; GitHubClient is the REST client
behind its GitHub-backed variant.
"""

from .capability import (
    GitHubPlatformAPI,
    NullPlatformAPI,
    PlatformAPI,
    create_platform_api,
)
from .client import GitHubAPIError, GitHubClient, RateLimitError

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "GitHubPlatformAPI",
    "NullPlatformAPI",
    "PlatformAPI",
    "RateLimitError",
    "create_platform_api",
]
