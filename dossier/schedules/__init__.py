"""Cron-driven schedules that create reports from templates."""

from __future__ import annotations

from .config import DEFAULT_TIMEZONE, ScheduleConfig
from .cron import is_valid, next_run, next_runs
from .errors import ScheduleError, ScheduleNotFoundError, ScheduleValidationError
from .observability import ScheduleEventLogger, ScheduleEventType
from .processor import ScheduleProcessor
from .service import (
    CreateScheduleInput,
    ScheduleService,
    UpdateScheduleInput,
    destination_type_for,
    report_title,
)

__all__ = [
    "DEFAULT_TIMEZONE",
    "CreateScheduleInput",
    "ScheduleConfig",
    "ScheduleError",
    "ScheduleEventLogger",
    "ScheduleEventType",
    "ScheduleNotFoundError",
    "ScheduleProcessor",
    "ScheduleService",
    "ScheduleValidationError",
    "UpdateScheduleInput",
    "destination_type_for",
    "is_valid",
    "next_run",
    "next_runs",
    "report_title",
]
