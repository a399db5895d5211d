"""
tests/test_trends.py
────────────────────
Tests for report-history analytics.
"""

import numpy as np
import pandas as pd

from src.analytics.trends import (
    FRAME_COLUMNS,
    classify_trend,
    fcr_trend,
    mortality_trend,
    recent_death_average,
    reports_since,
    reports_to_frame,
    trend_slope,
)


class TestReportsToFrame:
    def test_empty_frame_has_columns(self):
        df = reports_to_frame([])
        assert list(df.columns) == FRAME_COLUMNS
        assert df.empty

    def test_sorted_oldest_first(self, make_report):
        reports = [
            make_report(fields={"mortalityCount": 1}, hours_ago=1),
            make_report(fields={"mortalityCount": 2}, hours_ago=5),
            make_report(fields={"mortalityCount": 3}, hours_ago=3),
        ]
        df = reports_to_frame(reports)
        assert df["deaths"].tolist() == [2, 3, 1]
        assert df["created_at"].is_monotonic_increasing

    def test_feed_efficiency_from_processed_data(self, make_report):
        df = reports_to_frame([
            make_report(report_type="feed", processed_data={"feed_efficiency": 1.9}, hours_ago=2),
            make_report(report_type="health", hours_ago=1),
        ])
        assert df["feed_efficiency"].iloc[0] == 1.9
        assert df["feed_efficiency"].isna().sum() == 1


class TestReportsSince:
    def test_window_is_inclusive(self, make_report, now):
        df = reports_to_frame([
            make_report(hours_ago=24),
            make_report(hours_ago=25),
            make_report(hours_ago=2),
        ])
        assert len(reports_since(df, now, 24)) == 2


class TestRecentDeathAverage:
    def test_average_of_last_three(self, make_report):
        df = reports_to_frame([
            make_report(fields={"mortalityCount": d}, hours_ago=h)
            for d, h in [(100, 10), (30, 3), (20, 2), (25, 1)]
        ])
        assert recent_death_average(df, "B-001", window=3) == 25.0

    def test_needs_two_reports(self, make_report):
        df = reports_to_frame([make_report(fields={"mortalityCount": 50})])
        assert recent_death_average(df, "B-001") is None

    def test_other_batches_ignored(self, make_report):
        df = reports_to_frame([
            make_report(batch_id="B-001", fields={"mortalityCount": 5}),
            make_report(batch_id="B-002", fields={"mortalityCount": 500}, hours_ago=2),
            make_report(batch_id="B-001", fields={"mortalityCount": 7}, hours_ago=3),
        ])
        assert recent_death_average(df, "B-001") == 6.0


class TestTrendSlope:
    def test_linear_series(self):
        assert np.isclose(trend_slope(pd.Series([1.0, 3.0, 5.0, 7.0])), 2.0)

    def test_flat_series_is_exactly_zero(self):
        assert trend_slope(pd.Series([4.0] * 6)) == 0.0

    def test_short_series(self):
        assert trend_slope(pd.Series([1.0, 2.0]), min_points=4) is None

    def test_classification(self):
        assert classify_trend(None, 1.0) == "unknown"
        assert classify_trend(2.0, 1.0) == "rising"
        assert classify_trend(-2.0, 1.0) == "falling"
        assert classify_trend(0.5, 1.0) == "stable"


class TestBatchTrends:
    def test_rising_mortality(self, make_report):
        df = reports_to_frame([
            make_report(fields={"mortalityCount": d}, hours_ago=10 - i)
            for i, d in enumerate([2, 4, 7, 9, 12])
        ])
        label, slope, fitted = mortality_trend(df, "B-001", window=8, min_points=4, tolerance=1.0)
        assert label == "rising"
        assert slope > 1.0
        assert fitted == 5

    def test_fcr_trend_ignores_other_kinds(self, make_report):
        reports = [
            make_report(report_type="feed", processed_data={"feed_efficiency": v}, hours_ago=10 - i)
            for i, v in enumerate([1.6, 1.6, 1.6, 1.6])
        ]
        reports.append(make_report(report_type="health", hours_ago=0.5))
        label, slope, fitted = fcr_trend(reports_to_frame(reports), "B-001", window=8, min_points=4, tolerance=0.05)
        assert label == "stable"
        assert slope == 0.0
        assert fitted == 4
