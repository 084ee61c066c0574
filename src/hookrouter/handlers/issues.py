"""Handler for issues events.

New issues get keyword-based labels, a category label for the server
they mention, a priority label when urgent, and a welcome comment when
they are the author's first issue.
"""

import logging
import re
from typing import Any, Dict, List

from ..github.client import GitHubAPIError
from ..webhook.models import EventEnvelope
from .base import EventHandler

logger = logging.getLogger(__name__)

_SERVER_MENTION = re.compile(r"server[:\s]+(\w+)")

# label -> (title keywords, body keywords)
KEYWORD_LABELS = {
    "bug": (("bug", "error", "issue"), ("bug", "error", "broken")),
    "enhancement": (("feature", "enhancement", "add"), ("feature request", "enhancement")),
    "documentation": (("doc", "readme"), ("documentation", "docs")),
    "question": (("question", "how to", "?"), ("question",)),
}

URGENT_KEYWORDS = ("urgent", "critical")


def keyword_labels(title: str, body: str) -> List[str]:
    """Labels implied by keywords in an issue's title or body."""
    title = title.lower()
    body = body.lower()
    return [
        label
        for label, (title_words, body_words) in KEYWORD_LABELS.items()
        if any(w in title for w in title_words) or any(w in body for w in body_words)
    ]


def category_labels(title: str, body: str) -> List[str]:
    """Server and priority labels derived from the issue text."""
    text = f"{title} {body}".lower()
    labels: List[str] = []
    match = _SERVER_MENTION.search(text)
    if match:
        labels.append(f"server:{match.group(1)}")
    if any(word in text for word in URGENT_KEYWORDS):
        labels.append("priority:high")
    return labels


def welcome_comment(login: str) -> str:
    return (
        f"👋 Thanks for opening your first issue, @{login}!\n\n"
        "To help us triage it quickly:\n"
        "- 🐛 For bugs, include steps to reproduce and your environment\n"
        "- 💡 For feature requests, describe the use case\n"
        "- ❓ For questions, check the README first\n\n"
        "A maintainer will take a look soon."
    )


class IssuesHandler(EventHandler):
    """Triages newly opened issues."""

    event_type = "issues"

    async def handle(self, envelope: EventEnvelope) -> None:
        issue = envelope.payload.get("issue") or {}

        logger.info(
            "Processing issues event",
            extra={
                "action": envelope.action,
                "repository": envelope.repository,
                "issue_number": issue.get("number"),
                "author": (issue.get("user") or {}).get("login"),
                "delivery_id": envelope.delivery_id,
            },
        )

        if envelope.action == "opened":
            await self._handle_opened(envelope, issue)
        elif envelope.action == "closed":
            logger.info(
                "Issue closed",
                extra={"issue_number": issue.get("number"), "reason": issue.get("state_reason")},
            )
        elif envelope.action == "labeled":
            logger.info(
                "Issue labeled",
                extra={
                    "issue_number": issue.get("number"),
                    "label": (envelope.payload.get("label") or {}).get("name"),
                },
            )
        elif envelope.action == "assigned":
            logger.info(
                "Issue assigned",
                extra={
                    "issue_number": issue.get("number"),
                    "assignee": (envelope.payload.get("assignee") or {}).get("login"),
                },
            )
        else:
            logger.debug("Unhandled issues action: %s", envelope.action)

    async def _handle_opened(
        self,
        envelope: EventEnvelope,
        issue: Dict[str, Any],
    ) -> None:
        if not self.api.available:
            logger.info(
                "Skipping issue triage: no GitHub token configured",
                extra={"issue_number": issue.get("number")},
            )
            return

        target = self.api_target(envelope)
        if target is None:
            return
        owner, repo = target
        number = issue["number"]
        title = issue.get("title") or ""
        body = issue.get("body") or ""

        await self._add_labels(owner, repo, number, keyword_labels(title, body))
        await self._welcome_first_time_reporter(owner, repo, issue)
        await self._add_labels(owner, repo, number, category_labels(title, body))

    async def _add_labels(
        self, owner: str, repo: str, number: int, labels: List[str]
    ) -> None:
        if not labels:
            return
        try:
            await self.api.add_labels(owner, repo, number, labels)
        except GitHubAPIError as e:
            logger.error(
                "Failed to label issue: %s", e, extra={"issue_number": number}
            )
            return
        logger.info(
            "Added labels to issue",
            extra={"issue_number": number, "labels": labels},
        )

    async def _welcome_first_time_reporter(
        self, owner: str, repo: str, issue: Dict[str, Any]
    ) -> None:
        login = (issue.get("user") or {}).get("login")
        if not login:
            return
        number = issue["number"]
        try:
            listed = await self.api.list_issues(owner, repo, creator=login, state="all")
            # The issues endpoint also returns pull requests
            authored = [i for i in listed if "pull_request" not in i]
            if len(authored) != 1:
                return
            await self.api.create_comment(owner, repo, number, welcome_comment(login))
        except GitHubAPIError as e:
            logger.error(
                "Failed to add welcome comment: %s", e, extra={"issue_number": number}
            )
            return
        logger.info(
            "Added welcome comment for first-time reporter",
            extra={"issue_number": number, "author": login},
        )
