"""
Unit tests for the privacy-preserving metrics aggregator.
"""
# 说明：指标聚合器的单元测试。
# 覆盖：
# - 事件校验：不合法事件与重复 id 均不产生写入
# - 聚合级别：>=5 个 cohort 为 high，3-4 个为 medium，其余为 low
# - 低于最小样本数的桶全部置 0、不加噪；达标桶计数非负且每次调用重新加噪
# - 只差一条事件的相邻数据集，聚合差值不是定值
# - 时间窗口两端均包含；分段统计与表现评分
# - 汇总 / 表现 / 漏斗报告只使用达标的数据

from __future__ import annotations

from datetime import timedelta

import pytest

from cohortlib.core.errors import DuplicateEventError, EventValidationError, ValidationError
from cohortlib.metrics import MetricsAggregator, MetricsEvent, TimeRange, aggregation_level_for
from cohortlib.metrics.storage import MetricsEventStore


def _events(cohort, start, impressions=0, clicks=0, conversions=0, prefix="e"):
    out = []
    for kind, count in (("impression", impressions), ("click", clicks), ("conversion", conversions)):
        for i in range(count):
            out.append(
                MetricsEvent(
                    event_id=f"{prefix}-{cohort}-{kind}-{i}",
                    event_type=kind,
                    cohort_id=cohort,
                    timestamp=start + timedelta(seconds=i),
                    domain="shop.example",
                )
            )
    return out


@pytest.fixture
def aggregator(clock):
    return MetricsAggregator(rng=1234, clock=clock)


@pytest.fixture
def window(clock):
    return TimeRange(clock.now() - timedelta(days=1), clock.now())


@pytest.mark.parametrize("count, level", [(1, "low"), (2, "low"), (3, "medium"), (4, "medium"), (5, "high"), (9, "high")])
def test_aggregation_levels(count, level) -> None:
    assert aggregation_level_for(count) == level


def test_invalid_event_is_not_written(aggregator, clock) -> None:
    bad = MetricsEvent("x1", "view", "c1", clock.now(), "shop.example")
    with pytest.raises(EventValidationError):
        aggregator.record_event(bad)
    with pytest.raises(EventValidationError):
        aggregator.record_event(MetricsEvent("", "click", "c1", clock.now(), "shop.example"))
    assert len(aggregator.store) == 0


def test_duplicate_event_rejected(aggregator, clock) -> None:
    event = MetricsEvent("dup", "click", "c1", clock.now(), "shop.example")
    aggregator.record_event(event)
    with pytest.raises(DuplicateEventError):
        aggregator.record_event(event)
    assert len(aggregator.store) == 1


def test_bucket_below_threshold_is_zeroed(aggregator, clock, window) -> None:
    # 单个 cohort 属于 low 级别，最小样本数为 100
    aggregator.record_events(_events("c1", window.start, impressions=80, clicks=19))
    [metric] = aggregator.get_aggregated_metrics(["c1"], window)
    assert metric.aggregation_level == "low"
    assert metric.privacy_threshold_met is False
    assert (metric.impressions, metric.clicks, metric.conversions) == (0, 0, 0)
    assert (metric.click_through_rate, metric.conversion_rate) == (0.0, 0.0)
    assert metric.data_points == 0
    assert metric.noise_scale == 0.0


def test_bucket_at_threshold_is_noised(aggregator, window) -> None:
    aggregator.record_events(_events("c1", window.start, impressions=800, clicks=150, conversions=50))
    [metric] = aggregator.get_aggregated_metrics(["c1"], window)
    assert metric.privacy_threshold_met is True
    assert metric.data_points == 1000
    assert metric.noise_scale == pytest.approx(4.0)
    assert metric.impressions >= 0 and metric.clicks >= 0 and metric.conversions >= 0
    assert abs(metric.impressions - 800) < 100
    assert metric.click_through_rate == round(metric.clicks / metric.impressions * 100, 2)


def test_noise_is_fresh_per_call(aggregator, window) -> None:
    aggregator.record_events(_events("c1", window.start, impressions=500, clicks=100))
    draws = {tuple(m.impressions for m in aggregator.get_aggregated_metrics(["c1"], window)) for _ in range(8)}
    assert len(draws) > 1


def test_neighbouring_datasets_differ_by_varying_amounts(aggregator, clock, window) -> None:
    base = _events("c1", window.start, impressions=500)
    neighbour = MetricsAggregator(rng=99, clock=clock)
    aggregator.record_events(base)
    neighbour.record_events(base + [MetricsEvent("extra", "impression", "c1", window.start, "shop.example")])
    deltas = set()
    for _ in range(20):
        [left] = aggregator.get_aggregated_metrics(["c1"], window)
        [right] = neighbour.get_aggregated_metrics(["c1"], window)
        deltas.add(right.impressions - left.impressions)
    # 相邻数据集的差值随噪声变化，不能由输出直接反推出多出的那条事件
    assert len(deltas) > 1


def test_high_level_uses_smaller_threshold(aggregator, window) -> None:
    cohorts = [f"c{i}" for i in range(5)]
    for cohort in cohorts:
        aggregator.record_events(_events(cohort, window.start, impressions=60))
    metrics = aggregator.get_aggregated_metrics(cohorts, window)
    assert [m.cohort_id for m in metrics] == cohorts
    assert all(m.aggregation_level == "high" and m.privacy_threshold_met for m in metrics)
    assert all(m.noise_scale == pytest.approx(1.0) for m in metrics)


def test_time_range_is_inclusive(aggregator, clock) -> None:
    start = clock.now()
    aggregator.record_events(_events("c1", start, impressions=100))
    end = start + timedelta(seconds=99)
    [metric] = aggregator.get_aggregated_metrics(["c1"], TimeRange(start, end))
    assert metric.privacy_threshold_met
    [short] = aggregator.get_aggregated_metrics(["c1"], TimeRange(start, end - timedelta(seconds=1)))
    assert not short.privacy_threshold_met


def test_request_validation(aggregator, window) -> None:
    with pytest.raises(ValidationError):
        aggregator.get_aggregated_metrics([], window)
    with pytest.raises(ValidationError):
        aggregator.get_aggregated_metrics("c1", window)
    with pytest.raises(ValidationError):
        aggregator.get_aggregated_metrics(["c1"], (window.start, window.end))


def test_segmented_metrics(aggregator, clock) -> None:
    start = clock.now() - timedelta(days=3)
    aggregator.record_events(_events("c1", start, impressions=150))
    reports = aggregator.get_privacy_preserving_aggregated_metrics(["c1"], TimeRange(start, clock.now()), "daily")
    assert len(reports) == 3
    assert reports[0]["privacy_info"]["privacy_threshold_met"] is True
    assert reports[1]["privacy_info"]["suppression_applied"] is True
    assert reports[1]["metrics"]["impressions"] == 0
    assert reports[0]["aggregation_info"]["period_count"] == 3
    assert 0 <= reports[0]["performance"]["overall_performance"] <= 100
    with pytest.raises(ValidationError):
        aggregator.get_privacy_preserving_aggregated_metrics(["c1"], TimeRange(start, clock.now()), "monthly")


def test_summary_and_performance_skip_suppressed(aggregator, window) -> None:
    aggregator.record_events(_events("big", window.start, impressions=900, clicks=90, conversions=20))
    aggregator.record_events(_events("small", window.start, impressions=10))
    summary = aggregator.get_metrics_summary(["big", "small"], window)
    assert summary["cohorts_with_sufficient_data"] == 1
    performance = aggregator.get_cohort_performance_metrics(["big", "small"], window)
    assert [p["cohort_id"] for p in performance] == ["big"]
    assert 0 <= performance[0]["performance_score"] <= 100


def test_cleanup_expired_events(clock) -> None:
    store = MetricsEventStore()
    aggregator = MetricsAggregator(store=store, rng=0, clock=clock)
    aggregator.record_events(_events("c1", clock.now() - timedelta(days=40), impressions=3, prefix="old"))
    aggregator.record_events(_events("c1", clock.now(), impressions=2, prefix="new"))
    assert aggregator.cleanup_expired_events() == 1
    assert len(store) == 2
    assert store.day_keys() == (clock.now().strftime("%Y-%m-%d"),)
