"""Notification interface fired once a report reaches COMPLETED."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from dossier.storage import Report


@typ.runtime_checkable
class ReportCompletedHook(typ.Protocol):
    """Receives completed reports so downstream work can be requested.

    Implementations request exports, delivery and podcasts without the
    report service holding references to those services.
    """

    async def on_report_completed(self, report: Report) -> None:
        """Handle a report that has just transitioned to COMPLETED."""
        ...
