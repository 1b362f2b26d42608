"""Guarded status transitions and bulk removal helpers.

Processors share the job tables without locks. Every state change goes
through :func:`transition`, a single ``UPDATE`` filtered on the expected
prior status, so two workers racing for the same row cannot both win.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import delete, select, update

from dossier.storage.models import (
    DocumentExport,
    PodcastDelivery,
    PodcastGeneration,
    Report,
    ReportDelivery,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import enum

    from sqlalchemy.engine import CursorResult
    from sqlalchemy.ext.asyncio import AsyncSession


class StatusTracked(typ.Protocol):
    """Mapped class with ``id`` and ``status`` columns."""

    id: typ.Any
    status: typ.Any


async def transition(
    session: AsyncSession,
    model: type[StatusTracked],
    row_id: str,
    *,
    expected: cabc.Iterable[enum.Enum],
    **values: object,
) -> bool:
    """Apply ``values`` to one row only if its status is in ``expected``.

    Parameters
    ----------
    session
        Session whose transaction the update joins; the caller commits.
    model
        Mapped job class.
    row_id
        Primary key of the row to update.
    expected
        Statuses the row must currently hold.
    **values
        Column assignments, which may be SQL expressions such as
        ``Model.retry_count + 1``.

    Returns
    -------
    bool
        ``True`` when the row matched and was updated.

    """
    stmt = (
        update(model)
        .where(model.id == row_id, model.status.in_(list(expected)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = typ.cast("CursorResult[typ.Any]", await session.execute(stmt))
    return result.rowcount == 1


async def delete_reports(session: AsyncSession, report_ids: cabc.Sequence[str]) -> None:
    """Delete reports and every job row that hangs off them.

    Children are removed explicitly so the cascade does not depend on the
    database enforcing foreign keys (SQLite does not by default).
    """
    if not report_ids:
        return
    podcast_ids = select(PodcastGeneration.id).where(
        PodcastGeneration.report_id.in_(report_ids)
    )
    await session.execute(
        delete(PodcastDelivery).where(PodcastDelivery.podcast_id.in_(podcast_ids))
    )
    await session.execute(
        delete(PodcastGeneration).where(PodcastGeneration.report_id.in_(report_ids))
    )
    await session.execute(
        delete(ReportDelivery).where(ReportDelivery.report_id.in_(report_ids))
    )
    await session.execute(
        delete(DocumentExport).where(DocumentExport.report_id.in_(report_ids))
    )
    await session.execute(delete(Report).where(Report.id.in_(report_ids)))
