"""
config/alerts.py
────────────────
Alert severity levels, insight classes, and ordering tables.
"""

from enum import Enum


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class InsightType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    CRITICAL = "critical"


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InsightCategory(str, Enum):
    MORTALITY = "Mortality"
    FEED = "Feed Efficiency"
    HEALTH = "Health"
    REPORTING = "Reporting"
    PERFORMANCE = "Overall Performance"
    PLANNING = "Planning"
    REPORTS = "Reports"
    RECENT_REPORT = "Recent Report"
    HEALTH_REPORT = "Health Report"
    TREND = "Trend"


# Severity ordering for sorting (higher = more severe)
SEVERITY_ORDER: dict[str, int] = {
    AlertSeverity.CRITICAL: 3,
    AlertSeverity.WARNING: 2,
    AlertSeverity.INFO: 1,
}

# Priority ordering for sorting (lower = handled first)
PRIORITY_ORDER: dict[str, int] = {
    InsightPriority.HIGH: 0,
    InsightPriority.MEDIUM: 1,
    InsightPriority.LOW: 2,
}

MAX_ALERTS_DISPLAY = 50
