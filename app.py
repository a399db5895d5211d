"""
app.py
──────
Poultry Batch Monitor: Application Entry Point.

Startup sequence:
  1. Configure logging from LOG_LEVEL
  2. Initialize SQLite DB and seed a simulated demo farm on first run
  3. Run one alert scan and one insight scan
  4. Keep scanning on the scheduler until interrupted (Ctrl+C)
"""
import logging
import time

from config.settings import settings
from src.data.store import initialize_db
from src.engine.alerts import run_alert_scan
from src.engine.insights import run_insight_scan
from src.engine.scheduler import MonitoringScheduler

# ── 1. Logging ────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger("poultry_monitor")


def main() -> None:
    # ── 2. Seed database on startup ───────────────────────────────────────────
    logger.info("Initializing database (%s)...", settings.DATABASE_URL)
    initialize_db()
    logger.info("Database ready.")

    # ── 3. First scans ────────────────────────────────────────────────────────
    for alert in run_alert_scan():
        logger.info("[%s] %s: %s", alert.severity.value.upper(), alert.title, alert.message)
    for insight in run_insight_scan():
        logger.info("[%s] %s", insight.priority.value, insight.title)

    # ── 4. Run ────────────────────────────────────────────────────────────────
    scheduler = MonitoringScheduler()
    scheduler.start()
    try:
        while scheduler.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        scheduler.stop()


if __name__ == "__main__":
    main()
