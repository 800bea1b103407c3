"""Fire-and-forget project activity log."""

from __future__ import annotations

import logging

from distill.db.models import ActivityEntry
from distill.db.repository import Repository, activity_metadata

logger = logging.getLogger(__name__)


def record_activity(
    repo: Repository,
    project_id: str,
    action: str,
    document_id: str | None = None,
    metadata: dict | None = None,
    actor: str = "system",
) -> None:
    """Append an activity entry. Failures are logged and discarded."""
    try:
        repo.add_activity(
            ActivityEntry(
                project_id=project_id,
                action=action,
                document_id=document_id,
                actor=actor,
                metadata=activity_metadata(metadata),
            )
        )
    except Exception as exc:
        logger.warning("activity.record-failed action=%s project=%s: %s", action, project_id, exc)
