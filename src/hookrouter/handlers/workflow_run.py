"""Handler for workflow_run events."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..github.client import GitHubAPIError
from ..webhook.models import EventEnvelope
from .base import EventHandler

logger = logging.getLogger(__name__)

CRITICAL_WORKFLOWS = ("Automatic Release Creation", "Security Scan")
MAIN_BRANCHES = ("main", "master")


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def run_duration_seconds(run: Dict[str, Any]) -> Optional[int]:
    """Seconds between a run's creation and its last update, if both are known."""
    started = _parse_timestamp(run.get("created_at"))
    finished = _parse_timestamp(run.get("updated_at"))
    if started is None or finished is None:
        return None
    return round((finished - started).total_seconds())


def failed_job_names(jobs: List[Dict[str, Any]]) -> List[str]:
    return [job.get("name", "") for job in jobs if job.get("conclusion") == "failure"]


class WorkflowRunHandler(EventHandler):
    """Reacts to CI workflow runs, mostly by reporting their outcome."""

    event_type = "workflow_run"

    async def handle(self, envelope: EventEnvelope) -> None:
        run = envelope.payload.get("workflow_run") or {}

        logger.info(
            "Processing workflow run event",
            extra={
                "action": envelope.action,
                "repository": envelope.repository,
                "workflow": run.get("name"),
                "status": run.get("status"),
                "conclusion": run.get("conclusion"),
                "branch": run.get("head_branch"),
                "delivery_id": envelope.delivery_id,
            },
        )

        if envelope.action == "completed":
            await self._handle_completed(envelope, run)
        elif envelope.action in ("requested", "in_progress"):
            logger.debug(
                "Workflow run %s",
                envelope.action,
                extra={"workflow": run.get("name"), "run_id": run.get("id")},
            )
        else:
            logger.debug("Unhandled workflow_run action: %s", envelope.action)

    async def _handle_completed(
        self,
        envelope: EventEnvelope,
        run: Dict[str, Any],
    ) -> None:
        conclusion = run.get("conclusion")
        name = run.get("name")
        extra = {
            "workflow": name,
            "run_id": run.get("id"),
            "duration_seconds": run_duration_seconds(run),
            "url": run.get("html_url"),
        }

        if conclusion == "success":
            logger.info("Workflow succeeded", extra=extra)
            if name == "Automatic Release Creation":
                logger.info("Release automation completed successfully")
        elif conclusion == "failure":
            logger.error("Workflow failed", extra=extra)
            await self._report_failure(envelope, run)
        elif conclusion == "cancelled":
            logger.warning("Workflow cancelled", extra=extra)
        elif conclusion == "timed_out":
            logger.error("Workflow timed out", extra=extra)
        else:
            logger.info("Workflow completed with conclusion %s", conclusion, extra=extra)

    async def _report_failure(
        self,
        envelope: EventEnvelope,
        run: Dict[str, Any],
    ) -> None:
        name = run.get("name")

        if self.api.available and run.get("id") is not None:
            await self._log_failed_jobs(envelope, run["id"])

        if name in CRITICAL_WORKFLOWS:
            logger.error("Critical workflow failed: %s", name)

        if run.get("head_branch") in MAIN_BRANCHES:
            logger.error(
                "Workflow failed on main branch",
                extra={"workflow": name, "branch": run.get("head_branch")},
            )

    async def _log_failed_jobs(self, envelope: EventEnvelope, run_id: Any) -> None:
        target = self.api_target(envelope)
        if target is None:
            return
        owner, repo = target
        try:
            jobs = await self.api.list_workflow_run_jobs(owner, repo, run_id)
        except GitHubAPIError as e:
            logger.error("Failed to list workflow jobs: %s", e, extra={"run_id": run_id})
            return

        failed = failed_job_names(jobs)
        if failed:
            logger.error(
                "Failed jobs in workflow run",
                extra={"run_id": run_id, "failed_jobs": failed},
            )
