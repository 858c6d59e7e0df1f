"""
Expiry Sweeper.

Drives overdue pending events to approval on a schedule, in
addition to the lazy sweep that runs whenever a group's events
or leaderboard are read. A late sweep only delays approval,
never changes its outcome: deadlines are absolute timestamps.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import sessionmaker

from core.clock import ClockProtocol, get_clock
from core.config import HouseRulesConfig
from storage.database import transaction_scope
from storage.repositories import EventRepository
from veto_engine.service import EventService
from veto_engine.types import SweepReport

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodic sweep over every group with overdue events."""

    def __init__(
        self,
        service: EventService,
        session_factory: sessionmaker,
        config: Optional[HouseRulesConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._service = service
        self._session_factory = session_factory
        self._config = config or HouseRulesConfig()
        self._clock = clock or get_clock()

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._last_report: Optional[SweepReport] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_report(self) -> Optional[SweepReport]:
        return self._last_report

    def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        """Sweep every group that has at least one overdue pending event."""
        now = now or self._clock.now()
        report = SweepReport(started_at=now)

        with transaction_scope(self._session_factory) as session:
            group_ids = EventRepository(session).list_groups_with_overdue(now)

        for group_id in group_ids:
            report.outcomes.append(self._service.sweep_group(group_id, now))

        report.finished_at = self._clock.now()
        self._last_report = report

        if group_ids:
            logger.info(
                f"Sweep pass complete | groups={len(group_ids)} "
                f"approved={report.resolved_count} failed={report.failed_count}"
            )
        else:
            logger.debug("Sweep pass complete | nothing overdue")

        return report

    async def run_forever(self) -> None:
        """
        Run sweep passes until stop() is called.

        Each pass runs in a worker thread so the event loop stays
        free while the database is busy. Errors in a pass are logged
        and the loop continues.
        """
        self._stop_event = asyncio.Event()
        self._running = True
        interval = self._config.sweep_interval_seconds

        logger.info(f"Starting expiry sweeper | interval={interval}s")

        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.to_thread(self.run_once)
                except Exception as e:
                    logger.error(f"Sweep pass error: {e}", exc_info=True)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Expiry sweeper stopped")

    def stop(self) -> None:
        """Request the loop to exit after the current pass."""
        if self._stop_event is not None:
            self._stop_event.set()
