"""Configuration for report generation.

Usage
-----
>>> config = ReportsConfig()
>>> config.temperature
0.7

>>> import os
>>> os.environ["DOSSIER_REPORTS_DEFAULT_MODEL"] = "gpt-4o"
>>> ReportsConfig.from_env().default_llm_model
'gpt-4o'

"""

from __future__ import annotations

import dataclasses as dc
import os

from dossier.common.env import positive_float
from dossier.reports.options import DEFAULT_TEMPERATURE


@dc.dataclass(frozen=True, slots=True)
class ReportsConfig:
    """Settings applied when reports are created.

    Attributes
    ----------
    temperature
        Sampling temperature captured into each configuration snapshot.
    default_llm_model
        Model recorded on reports that do not name one; ``None`` lets the
        primary provider use its configured model.
    max_page_size
        Upper bound on ``limit`` for report listings.
    stop_timeout
        Seconds shutdown waits for in-progress generations before
        abandoning them.

    """

    temperature: float = DEFAULT_TEMPERATURE
    default_llm_model: str | None = None
    max_page_size: int = 100
    stop_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> ReportsConfig:
        """Create configuration from ``DOSSIER_REPORTS_*`` variables.

        Reads ``DOSSIER_REPORTS_TEMPERATURE`` (0 to 2),
        ``DOSSIER_REPORTS_DEFAULT_MODEL`` and
        ``DOSSIER_REPORTS_MAX_PAGE_SIZE`` (positive integer) and
        ``DOSSIER_REPORTS_STOP_TIMEOUT_S`` (positive number).

        Raises
        ------
        ValueError
            If a numeric variable is malformed or out of range.

        """
        temperature = DEFAULT_TEMPERATURE
        raw_temperature = os.environ.get("DOSSIER_REPORTS_TEMPERATURE", "").strip()
        if raw_temperature:
            try:
                temperature = float(raw_temperature)
            except ValueError as exc:
                msg = (
                    "DOSSIER_REPORTS_TEMPERATURE must be a number, "
                    f"got: {raw_temperature!r}"
                )
                raise ValueError(msg) from exc
            if not 0 <= temperature <= 2:  # noqa: PLR2004
                msg = f"DOSSIER_REPORTS_TEMPERATURE must be in [0, 2], got: {temperature}"
                raise ValueError(msg)

        max_page_size = 100
        raw_page = os.environ.get("DOSSIER_REPORTS_MAX_PAGE_SIZE", "").strip()
        if raw_page:
            try:
                max_page_size = int(raw_page)
            except ValueError as exc:
                msg = f"DOSSIER_REPORTS_MAX_PAGE_SIZE must be an integer, got: {raw_page!r}"
                raise ValueError(msg) from exc
            if max_page_size < 1:
                msg = f"DOSSIER_REPORTS_MAX_PAGE_SIZE must be positive, got: {max_page_size}"
                raise ValueError(msg)

        default_model = os.environ.get("DOSSIER_REPORTS_DEFAULT_MODEL", "").strip()
        return cls(
            temperature=temperature,
            default_llm_model=default_model or None,
            max_page_size=max_page_size,
            stop_timeout=positive_float("DOSSIER_REPORTS_STOP_TIMEOUT_S", 60.0),
        )
