"""Shared fixtures for BDD feature tests.

pytest-bdd steps are synchronous, so each step that touches storage runs
its coroutine with :meth:`ScenarioDatabase.run`. Every call opens a fresh
engine on the scenario's SQLite file inside its own event loop and
disposes it afterwards; rows persist between steps through the file.
"""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from dossier.storage import init_storage

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession

T = typ.TypeVar("T")
SessionWork: typ.TypeAlias = (
    "cabc.Callable[[async_sessionmaker[AsyncSession]], cabc.Awaitable[T]]"
)


class ScenarioDatabase:
    """SQLite file shared by the steps of one scenario."""

    def __init__(self, path: Path) -> None:
        self.url = f"sqlite+aiosqlite:///{path}"
        self._initialised = False

    def run(self, work: SessionWork[T]) -> T:
        """Run ``work`` with a session factory in a fresh event loop."""
        return asyncio.run(self._run(work))

    async def _run(self, work: SessionWork[T]) -> T:
        engine = create_async_engine(self.url)
        try:
            if not self._initialised:
                await init_storage(engine)
                self._initialised = True
            return await work(async_sessionmaker(engine, expire_on_commit=False))
        finally:
            await engine.dispose()


@pytest.fixture
def scenario_db(tmp_path: Path) -> ScenarioDatabase:
    """Provide a per-scenario database."""
    return ScenarioDatabase(tmp_path / "scenario.db")
