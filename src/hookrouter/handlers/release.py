"""Handler for release events."""

import logging
from typing import Any, Dict, List, Optional

from ..github.client import GitHubAPIError
from ..webhook.models import EventEnvelope
from .base import EventHandler

logger = logging.getLogger(__name__)

REQUIRED_NOTE_SECTIONS = ("## What's Changed", "## New Features", "## Bug Fixes")
BREAKING_CHANGE_MARKER = "⚠️"

# Compared against when the release is the repository's first
FALLBACK_BASE = "HEAD~10"


def missing_note_sections(body: str) -> List[str]:
    return [section for section in REQUIRED_NOTE_SECTIONS if section not in body]


def has_unmarked_breaking_change(body: str) -> bool:
    return "breaking" in body.lower() and BREAKING_CHANGE_MARKER not in body


class ReleaseHandler(EventHandler):
    """Reacts to release publication and edits.

    Published releases are announced in the log and summarized by
    comparing the tag with the previous release. Created or edited releases
    have their notes checked for the standard sections.
    """

    event_type = "release"

    async def handle(self, envelope: EventEnvelope) -> None:
        release = envelope.payload.get("release") or {}

        logger.info(
            "Processing release event",
            extra={
                "action": envelope.action,
                "repository": envelope.repository,
                "tag": release.get("tag_name"),
                "prerelease": bool(release.get("prerelease")),
                "delivery_id": envelope.delivery_id,
            },
        )

        if envelope.action == "published":
            await self._handle_published(envelope, release)
        elif envelope.action in ("created", "edited"):
            self._validate_release_notes(release)
        elif envelope.action == "deleted":
            logger.info(
                "Release deleted",
                extra={"repository": envelope.repository, "tag": release.get("tag_name")},
            )
        else:
            logger.debug("Unhandled release action: %s", envelope.action)

    async def _handle_published(
        self,
        envelope: EventEnvelope,
        release: Dict[str, Any],
    ) -> None:
        kind = "pre-release" if release.get("prerelease") else "stable release"
        logger.info(
            "Published %s %s",
            kind,
            release.get("tag_name"),
            extra={"repository": envelope.repository, "url": release.get("html_url")},
        )

        if not self.api.available:
            return
        await self._summarize_release(envelope, release)

    async def _summarize_release(
        self,
        envelope: EventEnvelope,
        release: Dict[str, Any],
    ) -> None:
        tag = release.get("tag_name")
        if not tag:
            return
        target = self.api_target(envelope)
        if target is None:
            return
        owner, repo = target

        try:
            releases = await self.api.list_releases(owner, repo, per_page=2)
            base = self._previous_tag(releases) or FALLBACK_BASE
            comparison = await self.api.compare_commits(owner, repo, base, tag)
        except GitHubAPIError as e:
            logger.error("Failed to compute release metrics: %s", e, extra={"tag": tag})
            return

        commits = comparison.get("commits") or []
        contributors = {
            (c.get("author") or {}).get("login")
            for c in commits
            if (c.get("author") or {}).get("login")
        }
        logger.info(
            "Release metrics",
            extra={
                "tag": tag,
                "base": base,
                "commits_count": len(commits),
                "contributors_count": len(contributors),
            },
        )

    @staticmethod
    def _previous_tag(releases: List[Dict[str, Any]]) -> Optional[str]:
        if len(releases) > 1:
            return releases[1].get("tag_name")
        return None

    def _validate_release_notes(self, release: Dict[str, Any]) -> None:
        body = release.get("body") or ""
        tag = release.get("tag_name")

        missing = missing_note_sections(body)
        if missing:
            logger.warning(
                "Release notes missing sections",
                extra={"tag": tag, "missing_sections": missing},
            )

        if has_unmarked_breaking_change(body):
            logger.warning(
                "Release mentions breaking changes without a warning marker",
                extra={"tag": tag},
            )
