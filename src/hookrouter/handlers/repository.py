"""Handler for repository events."""

import logging

from ..webhook.models import EventEnvelope
from .base import EventHandler

logger = logging.getLogger(__name__)

LOGGED_ACTIONS = {
    "created": "Repository created",
    "deleted": "Repository deleted",
    "archived": "Repository archived",
    "unarchived": "Repository unarchived",
    "publicized": "Repository made public",
    "privatized": "Repository made private",
}


class RepositoryHandler(EventHandler):
    """Logs repository lifecycle changes."""

    event_type = "repository"

    async def handle(self, envelope: EventEnvelope) -> None:
        message = LOGGED_ACTIONS.get(envelope.action or "")
        if message is None:
            logger.debug("Unhandled repository action: %s", envelope.action)
            return

        sender = envelope.payload.get("sender") or {}
        logger.info(
            message,
            extra={
                "repository": envelope.repository,
                "sender": sender.get("login"),
                "delivery_id": envelope.delivery_id,
            },
        )
