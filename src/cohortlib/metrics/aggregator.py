"""
Privacy-preserving metrics aggregation.

Responsibilities:
    * validate and record impression / click / conversion events
    * aggregate per cohort (optionally per time segment) behind a minimum
      sample threshold and Laplace noise
    * derive attribution, funnel, summary and performance reports from the
      thresholded, noised aggregates

Aggregation level depends on how many cohorts are requested::

    >= 5 cohorts -> high   (epsilon 1.0,  min samples 50)
    3-4 cohorts  -> medium (epsilon 0.5,  min samples 75)
    otherwise    -> low    (epsilon 0.25, min samples 100)
"""
# 说明：隐私保护的指标聚合器。
# 职责：
# - record_event：先校验再写入（不合法或重复的事件不产生任何写入）
# - get_aggregated_metrics：按 cohort 分桶；低于最小样本数的桶全部置 0 且不加噪；
#   达标桶对每个计数加拉普拉斯噪声（敏感度 1，尺度 1/epsilon），四舍五入并截断为非负；
#   比率基于加噪后的计数计算
# - get_privacy_preserving_aggregated_metrics：按 (cohort, 时间段) 分桶并附带表现评分与隐私信息
# - generate_attribution_reports 及其聚合 / 漏斗 / 汇总 / 表现报告
# 约定：
# - 噪声来自同一个共享 numpy Generator，每次调用重新采样
# - 阈值抑制与加噪均不是错误

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..core.errors import DuplicateEventError, ValidationError
from ..core.privacy.laplace import LaplaceMechanism
from ..core.utils.clock import Clock, SystemClock
from ..core.utils.config import MetricsConfig
from ..core.utils.logging import get_logger
from ..core.utils.random import create_rng, default_rng
from . import helpers
from .attribution import AttributionReporter
from .events import validate_event
from .models import AggregatedMetrics, AttributionReport, MetricsEvent, TimeRange
from .storage import MetricsEventStore

logger = get_logger(__name__)


def aggregation_level_for(cohort_count: int) -> str:
    if cohort_count >= 5:
        return "high"
    if cohort_count >= 3:
        return "medium"
    return "low"


def _unique(cohort_ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(cohort_ids))


class MetricsAggregator:
    """Record events and report thresholded, noised aggregates."""

    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        *,
        store: Optional[MetricsEventStore] = None,
        rng: Optional[Any] = None,
        clock: Optional[Clock] = None,
        attribution: Optional[AttributionReporter] = None,
    ):
        self.config = config or MetricsConfig()
        self.store = store or MetricsEventStore()
        self.clock: Clock = clock or SystemClock()
        self._rng = create_rng(rng) if rng is not None else default_rng()
        self._mechanisms: Dict[str, LaplaceMechanism] = {
            level: LaplaceMechanism(
                epsilon=self.config.policy_for(level).epsilon,
                sensitivity=self.config.sensitivity,
                rng=self._rng,
                name=f"metrics-{level}",
            )
            for level in ("high", "medium", "low")
        }
        self.attribution = attribution or AttributionReporter(self.config, rng=self._rng)
        self._write_lock = threading.Lock()

    # ------------------------------------------------------------------ ingestion
    def record_event(self, event: MetricsEvent) -> None:
        validate_event(event)
        with self._write_lock:
            if self.store.contains(event.event_id):
                raise DuplicateEventError(f"event '{event.event_id}' already recorded")
            self.store.append(event)
        logger.debug("recorded %s event for cohort bucket", event.event_type)

    def record_events(self, events: Iterable[MetricsEvent]) -> int:
        count = 0
        for event in events:
            self.record_event(event)
            count += 1
        return count

    def cleanup_expired_events(self, now: Optional[datetime] = None) -> int:
        now = now if now is not None else self.clock.now()
        removed = self.store.cleanup_expired(now, self.config.event_retention_days)
        if removed:
            logger.info("removed %d expired metrics day buckets", removed)
        return removed

    # ------------------------------------------------------------------ core aggregation
    def _aggregate_bucket(
        self,
        cohort_id: str,
        events: Sequence[MetricsEvent],
        time_range: TimeRange,
        level: str,
    ) -> AggregatedMetrics:
        policy = self.config.policy_for(level)
        data_points = len(events)
        if data_points < policy.min_samples:
            return AggregatedMetrics(
                cohort_id=cohort_id,
                time_range=time_range,
                impressions=0,
                clicks=0,
                conversions=0,
                click_through_rate=0.0,
                conversion_rate=0.0,
                aggregation_level=level,
                data_points=0,
                privacy_threshold_met=False,
                noise_scale=0.0,
            )
        mechanism = self._mechanisms[level]
        counts = {"impression": 0, "click": 0, "conversion": 0}
        for event in events:
            counts[event.event_type] += 1
        impressions = mechanism.noisy_count(counts["impression"])
        clicks = mechanism.noisy_count(counts["click"])
        conversions = mechanism.noisy_count(counts["conversion"])
        return AggregatedMetrics(
            cohort_id=cohort_id,
            time_range=time_range,
            impressions=impressions,
            clicks=clicks,
            conversions=conversions,
            click_through_rate=helpers.rate(clicks, impressions, self.config.ctr_min_impressions),
            conversion_rate=helpers.rate(conversions, clicks, self.config.conversion_min_clicks),
            aggregation_level=level,
            data_points=data_points,
            privacy_threshold_met=True,
            noise_scale=mechanism.scale,
        )

    def _events_by_cohort(self, cohort_ids: Sequence[str], time_range: TimeRange) -> Dict[str, List[MetricsEvent]]:
        grouped: Dict[str, List[MetricsEvent]] = defaultdict(list)
        for event in self.store.events_in_range(time_range, cohort_ids):
            grouped[event.cohort_id].append(event)
        return grouped

    @staticmethod
    def _check_request(cohort_ids: Sequence[str], time_range: TimeRange) -> List[str]:
        if not isinstance(time_range, TimeRange):
            raise ValidationError("time_range must be a TimeRange")
        if isinstance(cohort_ids, str):
            raise ValidationError("cohort_ids must be a sequence of strings")
        ids = _unique(cohort_ids)
        if not ids or not all(isinstance(c, str) and c for c in ids):
            raise ValidationError("cohort_ids must be non-empty strings")
        return ids

    def get_aggregated_metrics(self, cohort_ids: Sequence[str], time_range: TimeRange) -> List[AggregatedMetrics]:
        """One thresholded, noised bucket per requested cohort, in request order."""
        ids = self._check_request(cohort_ids, time_range)
        level = aggregation_level_for(len(ids))
        grouped = self._events_by_cohort(ids, time_range)
        return [self._aggregate_bucket(cid, grouped.get(cid, []), time_range, level) for cid in ids]

    def get_privacy_preserving_aggregated_metrics(
        self,
        cohort_ids: Sequence[str],
        time_range: TimeRange,
        granularity: str = "daily",
    ) -> List[Dict[str, Any]]:
        """Per (cohort, segment) buckets with scores, privacy and aggregation info."""
        ids = self._check_request(cohort_ids, time_range)
        segments = helpers.time_segments(time_range, granularity)
        level = aggregation_level_for(len(ids))
        grouped = self._events_by_cohort(ids, time_range)
        reports: List[Dict[str, Any]] = []
        for cohort_id in ids:
            events = grouped.get(cohort_id, [])
            for index, segment in enumerate(segments):
                last = index == len(segments) - 1
                # 段内区间左闭右开，最后一段包含窗口结束时刻
                bucket = [
                    e for e in events
                    if segment.start <= e.timestamp < segment.end or (last and e.timestamp == segment.end)
                ]
                metric = self._aggregate_bucket(cohort_id, bucket, segment, level)
                reports.append(self._segment_report(metric, granularity, len(segments)))
        return reports

    @staticmethod
    def _segment_report(metric: AggregatedMetrics, granularity: str, period_count: int) -> Dict[str, Any]:
        engagement = helpers.engagement_score(metric)
        reach = helpers.reach_score(metric)
        relevance = helpers.relevance_score(metric)
        return {
            "cohort_id": metric.cohort_id,
            "time_range": metric.time_range.to_dict(),
            "metrics": {
                "impressions": metric.impressions,
                "clicks": metric.clicks,
                "conversions": metric.conversions,
                "click_through_rate": metric.click_through_rate,
                "conversion_rate": metric.conversion_rate,
            },
            "performance": {
                "engagement_score": round(engagement, 2),
                "reach_score": round(reach, 2),
                "relevance_score": round(relevance, 2),
                "overall_performance": round((engagement + reach + relevance) / 3, 2),
            },
            "privacy_info": {
                "data_points": metric.data_points,
                "noise_scale": metric.noise_scale,
                "privacy_threshold_met": metric.privacy_threshold_met,
                "suppression_applied": not metric.privacy_threshold_met,
            },
            "aggregation_info": {
                "granularity": granularity,
                "period_count": period_count,
                "completeness": helpers.data_completeness(metric.data_points, 1),
            },
        }

    # ------------------------------------------------------------------ attribution
    def generate_attribution_reports(
        self,
        time_range: TimeRange,
        cohort_ids: Sequence[str] = (),
    ) -> List[AttributionReport]:
        if not isinstance(time_range, TimeRange):
            raise ValidationError("time_range must be a TimeRange")
        wanted = _unique(cohort_ids) or None
        grouped: Dict[str, List[MetricsEvent]] = defaultdict(list)
        for event in self.store.events_in_range(time_range, wanted):
            grouped[event.cohort_id].append(event)
        now = self.clock.now()
        reports: List[AttributionReport] = []
        for cohort_id in sorted(grouped):
            reports.extend(self.attribution.generate(cohort_id, grouped[cohort_id], time_range, now))
        return reports

    def generate_aggregated_attribution_reports(
        self,
        cohort_ids: Sequence[str],
        time_range: TimeRange,
    ) -> List[Dict[str, Any]]:
        """Per-cohort attribution totals, suppressed below the conversion threshold."""
        ids = _unique(cohort_ids)
        reports = self.generate_attribution_reports(time_range, ids)
        by_cohort: Dict[str, List[AttributionReport]] = defaultdict(list)
        for report in reports:
            by_cohort[report.cohort_id].append(report)
        results: List[Dict[str, Any]] = []
        for cohort_id in ids or sorted(by_cohort):
            cohort_reports = by_cohort.get(cohort_id, [])
            count = len(cohort_reports)
            compliant = count >= self.config.suppression_threshold
            by_source: Dict[str, int] = defaultdict(int)
            for report in cohort_reports:
                by_source[report.source_event.domain] += 1
            results.append(
                {
                    "cohort_id": cohort_id,
                    "attributed_conversions": count if compliant else 0,
                    "total_conversion_value": (
                        round(sum(r.conversion_value for r in cohort_reports), 2) if compliant else 0.0
                    ),
                    "average_attribution_delay": (
                        round(sum(r.attribution_delay for r in cohort_reports) / count) if compliant else 0
                    ),
                    "conversions_by_source": dict(by_source) if compliant else {},
                    "privacy_compliant": compliant,
                    "reporting_period": time_range.to_dict(),
                }
            )
        return results

    # ------------------------------------------------------------------ derived reports
    def generate_conversion_funnel_report(
        self,
        cohort_ids: Sequence[str],
        time_range: TimeRange,
    ) -> List[Dict[str, Any]]:
        """Funnel rates for cohorts whose metrics and attribution both pass suppression."""
        metrics = self.get_aggregated_metrics(cohort_ids, time_range)
        attribution = {r["cohort_id"]: r for r in self.generate_aggregated_attribution_reports(cohort_ids, time_range)}
        funnel: List[Dict[str, Any]] = []
        for metric in metrics:
            attributed = attribution.get(metric.cohort_id, {})
            if not (metric.privacy_threshold_met and attributed.get("privacy_compliant", False)):
                continue
            funnel.append(
                {
                    "cohort_id": metric.cohort_id,
                    "impressions": metric.impressions,
                    "clicks": metric.clicks,
                    "conversions": metric.conversions,
                    "attributed_conversions": attributed["attributed_conversions"],
                    "impression_to_click_rate": helpers.rate(metric.clicks, metric.impressions, 1),
                    "click_to_conversion_rate": helpers.rate(metric.conversions, metric.clicks, 1),
                    "impression_to_conversion_rate": helpers.rate(metric.conversions, metric.impressions, 1),
                    "average_time_to_conversion": attributed["average_attribution_delay"],
                    "privacy_compliant": True,
                }
            )
        return funnel

    def get_metrics_summary(self, cohort_ids: Sequence[str], time_range: TimeRange) -> Dict[str, Any]:
        metrics = [m for m in self.get_aggregated_metrics(cohort_ids, time_range) if m.privacy_threshold_met]
        impressions = sum(m.impressions for m in metrics)
        clicks = sum(m.clicks for m in metrics)
        conversions = sum(m.conversions for m in metrics)
        return {
            "total_impressions": impressions,
            "total_clicks": clicks,
            "total_conversions": conversions,
            "average_ctr": helpers.rate(clicks, impressions, self.config.ctr_min_impressions),
            "average_conversion_rate": helpers.rate(conversions, clicks, self.config.conversion_min_clicks),
            "cohorts_with_sufficient_data": len(metrics),
        }

    def get_cohort_performance_metrics(self, cohort_ids: Sequence[str], time_range: TimeRange) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        for metric in self.get_aggregated_metrics(cohort_ids, time_range):
            if not metric.privacy_threshold_met:
                continue
            engagement = (
                (metric.clicks + metric.conversions) / metric.impressions * 100 if metric.impressions > 0 else 0.0
            )
            results.append(
                {
                    "cohort_id": metric.cohort_id,
                    "performance_score": helpers.performance_score(metric),
                    "engagement_rate": round(engagement, 2),
                    "reach_estimate": metric.impressions,
                    "privacy_compliant": True,
                }
            )
        return results
