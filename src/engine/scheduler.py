"""
src/engine/scheduler.py
───────────────────────
Periodic driver for the alert and insight scans.

  alert scan   every ALERT_SCAN_INTERVAL_S   (default 30 s)
  insight scan every INSIGHT_SCAN_INTERVAL_S (default 60 s)

run_pending(now) is the deterministic core: it runs whichever scans are due
at `now` and records when each ran. start() wraps it in a daemon thread that
ticks once a second until stop() is called. A failing scan is logged and
retried on its next due time.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from config.settings import settings
from src.engine.alerts import run_alert_scan
from src.engine.insights import run_insight_scan

logger = logging.getLogger(__name__)

ScanFn = Callable[[datetime], object]


@dataclass
class ScheduledScan:
    name: str
    interval: timedelta
    run: ScanFn
    last_run: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        return self.last_run is None or now - self.last_run >= self.interval


class MonitoringScheduler:
    def __init__(
        self,
        alert_scan: ScanFn = run_alert_scan,
        insight_scan: ScanFn = run_insight_scan,
        alert_interval_s: int = settings.ALERT_SCAN_INTERVAL_S,
        insight_interval_s: int = settings.INSIGHT_SCAN_INTERVAL_S,
        tick_s: float = 1.0,
    ):
        self.scans = [
            ScheduledScan("alerts", timedelta(seconds=alert_interval_s), alert_scan),
            ScheduledScan("insights", timedelta(seconds=insight_interval_s), insight_scan),
        ]
        self.tick_s = tick_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_pending(self, now: datetime | None = None) -> list[str]:
        """Run every due scan; returns the names of the scans attempted."""
        now = now or datetime.now(UTC)
        ran: list[str] = []
        for scan in self.scans:
            if not scan.is_due(now):
                continue
            scan.last_run = now
            ran.append(scan.name)
            try:
                scan.run(now)
            except Exception:
                logger.exception("Scheduled %s scan failed", scan.name)
        return ran

    def _loop(self) -> None:
        logger.info("Monitoring scheduler started")
        while not self._stop.is_set():
            self.run_pending()
            self._stop.wait(self.tick_s)
        logger.info("Monitoring scheduler stopped")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="monitoring-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
