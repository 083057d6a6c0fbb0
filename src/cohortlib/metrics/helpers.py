"""
Scoring and segmentation helpers for metrics reports.
"""
# 说明：指标报告的辅助函数（均为纯函数）。
# 职责：
# - time_segments：按 hourly / daily / weekly 切分时间窗口（最后一段截断到窗口结束）
# - data_completeness：数据点 / (分段数 × 10)，上限 1
# - engagement_score / reach_score / relevance_score / performance_score：0~100 的表现评分
# - rate：带低量截断的百分比（保留两位小数）

from __future__ import annotations

from datetime import timedelta
from typing import List

from ..core.errors import ValidationError
from .models import AggregatedMetrics, GRANULARITIES, TimeRange

_STEPS = {
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
}
EXPECTED_POINTS_PER_SEGMENT = 10


def time_segments(time_range: TimeRange, granularity: str) -> List[TimeRange]:
    if granularity not in GRANULARITIES:
        raise ValidationError(f"granularity must be one of {', '.join(GRANULARITIES)}")
    step = _STEPS[granularity]
    segments: List[TimeRange] = []
    cursor = time_range.start
    while cursor < time_range.end:
        upper = min(cursor + step, time_range.end)
        segments.append(TimeRange(cursor, upper))
        cursor = upper
    return segments


def data_completeness(data_points: int, segment_count: int) -> float:
    if segment_count <= 0:
        return 0.0
    return min(1.0, data_points / (segment_count * EXPECTED_POINTS_PER_SEGMENT))


def rate(numerator: int, denominator: int, minimum: int) -> float:
    """Percentage rounded to two decimals; 0 when the denominator is below `minimum`."""
    if denominator <= 0 or denominator < minimum:
        return 0.0
    return round(numerator / denominator * 100, 2)


def _normalized_ctr(metric: AggregatedMetrics) -> float:
    # 10% 点击率视为满分
    return min(metric.click_through_rate / 10, 1.0)


def _normalized_conversion(metric: AggregatedMetrics) -> float:
    # 20% 转化率视为满分
    return min(metric.conversion_rate / 20, 1.0)


def engagement_score(metric: AggregatedMetrics) -> float:
    if not metric.privacy_threshold_met:
        return 0.0
    return (_normalized_ctr(metric) * 0.8 + _normalized_conversion(metric) * 0.2) * 100


def reach_score(metric: AggregatedMetrics) -> float:
    if not metric.privacy_threshold_met or metric.impressions <= 0:
        return 0.0
    if metric.impressions < 1000:
        return metric.impressions / 1000 * 50
    if metric.impressions >= 10_000:
        return 100.0
    return 50 + (metric.impressions - 1000) / 9000 * 50


def relevance_score(metric: AggregatedMetrics) -> float:
    if not metric.privacy_threshold_met:
        return 0.0
    return (_normalized_conversion(metric) * 0.7 + _normalized_ctr(metric) * 0.3) * 100


def performance_score(metric: AggregatedMetrics) -> float:
    if not metric.privacy_threshold_met:
        return 0.0
    volume = min(metric.data_points / 1000, 1.0)
    score = (_normalized_ctr(metric) * 0.4 + _normalized_conversion(metric) * 0.4 + volume * 0.2) * 100
    return round(score, 2)
