"""Countdown driver for one open attempt.

Decrements a local countdown from wall-clock deltas, pushes an auto-save
snapshot every heartbeat interval and seals the attempt exactly once when the
countdown reaches zero. A gap between ticks longer than the suspend threshold
(laptop sleep, backgrounded tab) is reconciled against the stored deadline
instead of trusting the local countdown.

A manual submit should be reported through ``complete()``; failing that, the
next refused heartbeat notices the sealed attempt and stops the countdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple

from ...platform.config import settings
from .errors import PersistenceError, SessionError

logger = logging.getLogger(__name__)

Snapshot = Tuple[int, Sequence[Optional[int]], Iterable[int]]


class SessionTimer:
    def __init__(
        self,
        service: Any,
        attempt_id: str,
        user_id: str,
        remaining_seconds: float,
        snapshot_provider: Optional[Callable[[], Snapshot]] = None,
        on_complete: Optional[Callable[[Any], None]] = None,
        heartbeat_seconds: Optional[float] = None,
        suspend_detect_seconds: Optional[float] = None,
        tick_seconds: float = 1.0,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.service = service
        self.attempt_id = attempt_id
        self.user_id = user_id
        self.snapshot_provider = snapshot_provider
        self.on_complete = on_complete
        self.heartbeat_seconds = (
            heartbeat_seconds if heartbeat_seconds is not None else settings.HEARTBEAT_INTERVAL_SECONDS
        )
        self.suspend_detect_seconds = (
            suspend_detect_seconds if suspend_detect_seconds is not None else settings.SUSPEND_DETECT_SECONDS
        )
        self.tick_seconds = tick_seconds
        self._monotonic = monotonic
        self._remaining = max(0.0, float(remaining_seconds))
        self._last_tick = monotonic()
        self._since_heartbeat = 0.0
        self._task: Optional[asyncio.Task] = None
        self.completed = False
        self.result: Any = None

    @property
    def remaining_seconds(self) -> int:
        return int(self._remaining)

    def tick(self) -> int:
        now = self._monotonic()
        elapsed = max(0.0, now - self._last_tick)
        self._last_tick = now
        if self.completed:
            return 0

        if elapsed > self.suspend_detect_seconds:
            self._reconcile(elapsed)
            if self.completed:
                return 0
        else:
            self._remaining = max(0.0, self._remaining - elapsed)

        self._since_heartbeat += elapsed
        if self._remaining <= 0:
            self._expire()
        elif self._since_heartbeat >= self.heartbeat_seconds:
            self._since_heartbeat = 0.0
            self._heartbeat()
        return self.remaining_seconds

    def _reconcile(self, elapsed: float) -> None:
        try:
            scored = self.service.get_result(self.attempt_id, self.user_id)
        except PersistenceError:
            logger.warning(
                "Resume reconciliation failed; using local countdown",
                extra={"attempt_id": self.attempt_id},
            )
            self._remaining = max(0.0, self._remaining - elapsed)
            return
        attempt = scored.attempt
        if attempt.is_completed:
            self._finish(attempt)
            return
        self._remaining = float(self.service.time_remaining(attempt))
        logger.info(
            "Timer resumed after %.0fs gap; %ds remaining", elapsed, self.remaining_seconds,
            extra={"attempt_id": self.attempt_id},
        )

    def _heartbeat(self) -> bool:
        if self.snapshot_provider is None:
            return False
        time_spent, answers, flagged = self.snapshot_provider()
        try:
            saved = self.service.heartbeat(self.attempt_id, self.user_id, time_spent, answers, flagged)
        except SessionError as exc:
            logger.warning("Heartbeat rejected: %s", exc.code, extra={"attempt_id": self.attempt_id})
            return False
        if not saved:
            self._stop_if_sealed()
        return saved

    def _stop_if_sealed(self) -> None:
        # A refused heartbeat usually means the attempt was submitted elsewhere.
        try:
            attempt = self.service.get_result(self.attempt_id, self.user_id).attempt
        except SessionError as exc:
            logger.warning("Seal check failed: %s", exc.code, extra={"attempt_id": self.attempt_id})
            return
        if attempt.is_completed:
            logger.info("Attempt sealed elsewhere; stopping timer", extra={"attempt_id": self.attempt_id})
            self._finish(attempt)

    def _expire(self) -> None:
        # Flush the latest snapshot so the seal scores what the user saw.
        self._heartbeat()
        if self.completed:
            return
        try:
            attempt = self.service.force_submit(self.attempt_id, self.user_id)
        except PersistenceError:
            logger.warning("Auto-submit failed; retrying on next tick", extra={"attempt_id": self.attempt_id})
            return
        logger.info("Time expired; attempt auto-submitted", extra={"attempt_id": self.attempt_id})
        self._finish(attempt)

    def complete(self, attempt: Any) -> None:
        """Stop the countdown for an attempt the caller has already submitted."""
        self._finish(attempt)

    def _finish(self, attempt: Any) -> None:
        if self.completed:
            return
        self.completed = True
        self._remaining = 0.0
        self.result = attempt
        if self.on_complete is not None:
            self.on_complete(attempt)

    async def run(self) -> Any:
        self._last_tick = self._monotonic()
        while not self.completed:
            await asyncio.sleep(self.tick_seconds)
            # Ticks may hit the database; keep them off the event loop.
            await asyncio.to_thread(self.tick)
        return self.result

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.ensure_future(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def __aenter__(self) -> "SessionTimer":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
