"""Exam window arithmetic: is an assessment enterable right now, and for how long.

A scheduled assessment has a shared entry window (e.g. opens 10:00, closes
11:40). Latecomers still receive the full exam duration while enough window
remains, but every entrant's deadline is capped at the window close.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ...platform.clock import ensure_utc
from ...platform.config import settings


class WindowStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    CLOSING_SOON = "closing_soon"
    CLOSED = "closed"


@dataclass(frozen=True)
class WindowEvaluation:
    is_available: bool
    remaining_seconds: int
    status: WindowStatus
    window_opens_at: Optional[datetime] = None
    window_closes_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_available": self.is_available,
            "remaining_seconds": self.remaining_seconds,
            "status": self.status.value,
            "window_opens_at": self.window_opens_at,
            "window_closes_at": self.window_closes_at,
        }


def _closed(opens_at: Optional[datetime] = None, closes_at: Optional[datetime] = None) -> WindowEvaluation:
    return WindowEvaluation(
        is_available=False,
        remaining_seconds=0,
        status=WindowStatus.CLOSED,
        window_opens_at=opens_at,
        window_closes_at=closes_at,
    )


def window_bounds(assessment: Any) -> tuple[Optional[datetime], Optional[datetime]]:
    """Return (opens_at, closes_at) for a scheduled assessment, else (None, None)."""
    opens_at = ensure_utc(getattr(assessment, "window_opens_at", None))
    if opens_at is None:
        return None, None
    window_minutes = getattr(assessment, "window_duration_minutes", None) or settings.DEFAULT_WINDOW_MINUTES
    return opens_at, opens_at + timedelta(minutes=int(window_minutes))


def evaluate_window(
    assessment: Any,
    now: datetime,
    closing_soon_threshold_seconds: Optional[int] = None,
) -> WindowEvaluation:
    """Evaluate enterability of ``assessment`` at the single instant ``now``."""
    now = ensure_utc(now)
    threshold = (
        closing_soon_threshold_seconds
        if closing_soon_threshold_seconds is not None
        else settings.CLOSING_SOON_THRESHOLD_MINUTES * 60
    )

    if not getattr(assessment, "is_active", False) or not getattr(assessment, "master_enabled", False):
        return _closed()

    duration_seconds = max(0, int(getattr(assessment, "exam_duration_minutes", 0) or 0) * 60)
    opens_at, closes_at = window_bounds(assessment)

    if opens_at is None:
        return WindowEvaluation(
            is_available=duration_seconds > 0,
            remaining_seconds=duration_seconds,
            status=WindowStatus.ACTIVE,
        )

    if now < opens_at:
        return WindowEvaluation(
            is_available=False,
            remaining_seconds=0,
            status=WindowStatus.NOT_STARTED,
            window_opens_at=opens_at,
            window_closes_at=closes_at,
        )
    if now >= closes_at:
        return _closed(opens_at, closes_at)

    window_remaining = int((closes_at - now).total_seconds())
    allotted = max(0, min(duration_seconds, window_remaining))
    status = WindowStatus.CLOSING_SOON if window_remaining <= threshold else WindowStatus.ACTIVE
    return WindowEvaluation(
        is_available=allotted > 0,
        remaining_seconds=allotted,
        status=status,
        window_opens_at=opens_at,
        window_closes_at=closes_at,
    )


def allotted_deadline(evaluation: WindowEvaluation, now: datetime) -> datetime:
    """Deadline for an entrant admitted at ``now`` under ``evaluation``."""
    return ensure_utc(now) + timedelta(seconds=evaluation.remaining_seconds)


def describe_window(evaluation: WindowEvaluation) -> Dict[str, Any]:
    """Display copy for the "opens in / closing soon" banner."""
    minutes = evaluation.remaining_seconds // 60
    if evaluation.status == WindowStatus.NOT_STARTED:
        label, info = "Not Started", "Exam window has not opened yet"
    elif evaluation.status == WindowStatus.CLOSING_SOON:
        label, info = "Closing Soon", f"Only {minutes} minutes left!"
    elif evaluation.status == WindowStatus.ACTIVE:
        label, info = "Available", f"{minutes} minutes available"
    else:
        label, info = "Closed", "Exam window has ended"
    return {
        "status_label": label,
        "time_info": info,
        "can_start": evaluation.is_available and evaluation.remaining_seconds > 0,
        "available_minutes": minutes,
    }
