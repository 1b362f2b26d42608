"""Audit trail of user and system actions.

Activity rows are best-effort: a failure to record one is logged and
never reaches the operation that triggered it.
"""

from __future__ import annotations

import enum
import typing as typ

from dossier.logging import get_logger, log_debug, log_warning
from dossier.storage import UserActivity

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class ActivityAction(enum.StrEnum):
    """Actions recorded in the activity log."""

    REPORT_CREATE = "REPORT_CREATE"
    REPORT_DELETE = "REPORT_DELETE"
    REPORT_RETRY = "REPORT_RETRY"
    REPORT_EXPORT = "REPORT_EXPORT"
    REPORT_DELIVER = "REPORT_DELIVER"
    TEMPLATE_CREATE = "TEMPLATE_CREATE"
    TEMPLATE_DELETE = "TEMPLATE_DELETE"
    TEMPLATE_APPLY = "TEMPLATE_APPLY"
    SCHEDULE_CREATE = "SCHEDULE_CREATE"
    SCHEDULE_UPDATE = "SCHEDULE_UPDATE"
    SCHEDULE_DELETE = "SCHEDULE_DELETE"
    SCHEDULE_ACTIVATE = "SCHEDULE_ACTIVATE"
    SCHEDULE_DEACTIVATE = "SCHEDULE_DEACTIVATE"
    SCHEDULE_TRIGGER = "SCHEDULE_TRIGGER"
    PODCAST_REQUEST = "PODCAST_REQUEST"
    WEBEX_REQUEST = "WEBEX_REQUEST"
    DATA_CLEANUP = "DATA_CLEANUP"


class ActivityRecorder:
    """Write :class:`UserActivity` rows in their own session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Bind the recorder to a session factory."""
        self._session_factory = session_factory

    async def record(
        self,
        owner_id: str | None,
        action: ActivityAction,
        **details: object,
    ) -> None:
        """Persist one activity; ``owner_id`` is ``None`` for system work."""
        try:
            async with self._session_factory() as session:
                session.add(
                    UserActivity(owner_id=owner_id, action=action, details=dict(details))
                )
                await session.commit()
        except Exception as exc:  # noqa: BLE001 - audit trail is best-effort
            log_warning(
                logger,
                "Failed to record activity %s for %s: %s",
                action,
                owner_id,
                exc,
                exc_info=exc,
            )
            return
        log_debug(logger, "Recorded activity %s for %s", action, owner_id)
