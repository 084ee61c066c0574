"""Event handlers for GitHub webhook deliveries.

One handler per event type. ``build_handler_registrations`` builds the
immutable table the router is constructed from.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from ..github.capability import PlatformAPI
from .base import EventHandler
from .dedup import DeduplicatingHandler, DeliveryDeduplicator, with_deduplication
from .issues import IssuesHandler
from .pull_request import PullRequestHandler
from .push import PushHandler
from .release import ReleaseHandler
from .repository import RepositoryHandler
from .workflow_run import WorkflowRunHandler

HANDLER_CLASSES = (
    PushHandler,
    PullRequestHandler,
    ReleaseHandler,
    WorkflowRunHandler,
    IssuesHandler,
    RepositoryHandler,
)


def build_handler_registrations(
    platform_api: Optional[PlatformAPI] = None,
    deduplicator: Optional[DeliveryDeduplicator] = None,
) -> Mapping[str, EventHandler]:
    """Build the event type -> handler table.

    Args:
        platform_api: Capability given to every handler.
        deduplicator: When set, every handler is wrapped so repeated
                      delivery ids are handled once.

    Returns:
        A read-only mapping keyed by X-GitHub-Event value.
    """
    registrations = {}
    for handler_class in HANDLER_CLASSES:
        handler = with_deduplication(handler_class(platform_api), deduplicator)
        registrations[handler.event_type] = handler
    return MappingProxyType(registrations)


__all__ = [
    "DeduplicatingHandler",
    "DeliveryDeduplicator",
    "EventHandler",
    "IssuesHandler",
    "PullRequestHandler",
    "PushHandler",
    "ReleaseHandler",
    "RepositoryHandler",
    "WorkflowRunHandler",
    "build_handler_registrations",
]
