"""Handler contract shared by all event handlers.

The router selects a handler by event type and the dispatch supervisor
calls ``handle(envelope)``. A handler may branch on the envelope's action
and payload however it likes, may call the platform API, and may raise:
the supervisor turns any exception into a failed delivery.

Handlers are built once at startup and shared by concurrent deliveries,
so they must not keep per-delivery state on ``self``.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..github.capability import NullPlatformAPI, PlatformAPI
from ..webhook.errors import HandlerError
from ..webhook.models import EventEnvelope

logger = logging.getLogger(__name__)

# Server packages live under src/<name>/ in the monorepo layout
_SERVER_PATH = re.compile(r"^src/([^/]+)/")


class EventHandler(ABC):
    """Base class for handlers of one GitHub event type.

    Attributes:
        event_type: The X-GitHub-Event value this handler is registered for.
        api: Platform API capability. NullPlatformAPI when no token is set.
    """

    event_type: str = ""

    def __init__(self, api: Optional[PlatformAPI] = None):
        self.api = api or NullPlatformAPI()

    @abstractmethod
    async def handle(self, envelope: EventEnvelope) -> None:
        """Handle one delivery.

        Args:
            envelope: The parsed delivery, exactly as received.

        Raises:
            Exception: Any failure. The supervisor reports it and answers
                the delivery with a 500.
        """

    def api_target(self, envelope: EventEnvelope) -> Optional[Tuple[str, str]]:
        """Return (owner, name) for API calls, or None if they must be skipped.

        A payload without a usable repository costs the delivery its API side
        effects, not the delivery itself.
        """
        try:
            return repository_coordinates(envelope.payload)
        except HandlerError as e:
            logger.warning(
                "Skipping GitHub API calls for %s: %s",
                self.name,
                e,
                extra=envelope.log_context(),
            )
            return None

    @property
    def name(self) -> str:
        """Name used in logs, outcomes and metrics."""
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{self.name}(event_type={self.event_type!r})"


def repository_coordinates(payload: Dict[str, Any]) -> Tuple[str, str]:
    """Return (owner, name) of the payload's repository.

    Raises:
        HandlerError: If the payload has no usable repository object.
    """
    repo = payload.get("repository")
    if not isinstance(repo, dict):
        raise HandlerError("Payload has no repository")

    owner = (repo.get("owner") or {}).get("login")
    name = repo.get("name")
    if owner and name:
        return owner, name

    full_name = repo.get("full_name") or ""
    if "/" in full_name:
        owner, _, name = full_name.partition("/")
        return owner, name

    raise HandlerError("Payload repository has no owner/name")


def affected_servers(paths: Iterable[str]) -> List[str]:
    """Server package names touched by a set of file paths, in first-seen order."""
    servers: List[str] = []
    for path in paths:
        match = _SERVER_PATH.match(path)
        if match and match.group(1) not in servers:
            servers.append(match.group(1))
    return servers


def commit_files(commit: Dict[str, Any]) -> List[str]:
    """All paths added, modified or removed by a push commit."""
    return [
        *(commit.get("added") or []),
        *(commit.get("modified") or []),
        *(commit.get("removed") or []),
    ]
