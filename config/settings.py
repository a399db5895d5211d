"""
config/settings.py
──────────────────
Application configuration loaded from environment variables.
"""
import os
from dataclasses import dataclass


@dataclass
class Settings:
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Database (SQLite path, ":memory:" for tests)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "poultry_monitor.db")

    # Scan cadence in seconds
    ALERT_SCAN_INTERVAL_S: int = int(os.getenv("ALERT_SCAN_INTERVAL_S", "30"))
    INSIGHT_SCAN_INTERVAL_S: int = int(os.getenv("INSIGHT_SCAN_INTERVAL_S", "60"))

    # Report submission
    MAX_SUBMIT_ATTEMPTS: int = int(os.getenv("MAX_SUBMIT_ATTEMPTS", "3"))

    # History windows used by the scanners
    SPIKE_REPORT_WINDOW: int = int(os.getenv("SPIKE_REPORT_WINDOW", "3"))
    TREND_WINDOW_DAYS: int = int(os.getenv("TREND_WINDOW_DAYS", "14"))

    # Simulation
    SEED_DEMO_DATA: bool = os.getenv("SEED_DEMO_DATA", "true").lower() == "true"
    SIMULATION_SEED: int = int(os.getenv("SIMULATION_SEED", "42"))
    HISTORY_DAYS: int = int(os.getenv("HISTORY_DAYS", "30"))
    DEMO_BATCHES: int = int(os.getenv("DEMO_BATCHES", "4"))

    # i18n
    DEFAULT_LANG: str = os.getenv("DEFAULT_LANG", "en")


settings = Settings()
