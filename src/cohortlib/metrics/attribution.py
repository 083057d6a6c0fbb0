"""
Impression-to-conversion attribution under a per-window privacy budget.

Responsibilities:
    * pair each conversion with the most recent earlier impression of the same cohort
    * charge every issued report against a (cohort, window) budget
    * perturb conversion values with Laplace noise
"""
# 说明：归因报告生成。
# 职责：
# - pair_conversions：同一 cohort 内，为每个转化匹配其之前最近的一次曝光
# - AttributionReporter.generate：每份报告从 (cohort, 时间窗口) 预算中扣除 report_epsilon；
#   privacy_budget 为扣除后的剩余额度（随报告数递减），预算耗尽后不再签发
# - conversion_value（metadata["value"]，缺省为 1）加拉普拉斯噪声，截断为非负并保留两位小数
# 约定：
# - 预算跨调用累积：同一窗口重复查询会继续消耗同一份预算

from __future__ import annotations

import bisect
import numbers
import uuid
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from ..core.privacy.budget_tracker import BudgetAlert, BudgetTracker, TrackedScope
from ..core.privacy.laplace import LaplaceMechanism
from ..core.utils.config import MetricsConfig
from ..core.utils.logging import get_logger
from .models import AttributionReport, MetricsEvent, TimeRange

logger = get_logger(__name__)

SCOPE_KIND = "attribution"


def pair_conversions(events: Iterable[MetricsEvent]) -> List[Tuple[MetricsEvent, MetricsEvent]]:
    """(impression, conversion) pairs for one cohort, in conversion order."""
    ordered = sorted(events, key=lambda e: (e.timestamp, e.event_id))
    impressions = [e for e in ordered if e.event_type == "impression"]
    impression_times = [e.timestamp for e in impressions]
    pairs: List[Tuple[MetricsEvent, MetricsEvent]] = []
    for conversion in (e for e in ordered if e.event_type == "conversion"):
        # 严格早于转化时间的最近一次曝光
        index = bisect.bisect_left(impression_times, conversion.timestamp)
        if index > 0:
            pairs.append((impressions[index - 1], conversion))
    return pairs


def _conversion_value(event: MetricsEvent) -> float:
    value = event.metadata.get("value", 1)
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return 1.0
    return float(value)


def _log_alert(alert: BudgetAlert) -> None:
    logger.info("attribution budget alert: %s", alert.message)


class AttributionReporter:
    """Issue attribution reports while budget remains for each (cohort, window)."""

    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        *,
        rng: Optional[Any] = None,
        tracker: Optional[BudgetTracker] = None,
    ):
        self.config = config or MetricsConfig()
        self.tracker = tracker or BudgetTracker(alert_handler=_log_alert)
        self.mechanism = LaplaceMechanism(
            epsilon=self.config.attribution_epsilon,
            sensitivity=self.config.sensitivity,
            rng=rng,
            name="attribution-value",
        )

    def scope_for(self, cohort_id: str, time_range: TimeRange) -> TrackedScope:
        identifier = f"{cohort_id}|{time_range.start.isoformat()}|{time_range.end.isoformat()}"
        return self.tracker.ensure_scope(SCOPE_KIND, identifier, total_epsilon=self.config.attribution_epsilon)

    def remaining_budget(self, cohort_id: str, time_range: TimeRange) -> float:
        remaining = self.tracker.remaining(self.scope_for(cohort_id, time_range))
        return 0.0 if remaining is None else remaining.epsilon

    def generate(
        self,
        cohort_id: str,
        events: Iterable[MetricsEvent],
        time_range: TimeRange,
        now: datetime,
    ) -> List[AttributionReport]:
        scope = self.scope_for(cohort_id, time_range)
        cost = self.config.report_epsilon
        reports: List[AttributionReport] = []
        pairs = pair_conversions(events)
        for source, trigger in pairs:
            if not self.tracker.can_spend(scope, cost):
                logger.info(
                    "attribution budget exhausted for cohort window; %d reports withheld",
                    len(pairs) - len(reports),
                )
                break
            self.tracker.spend(scope, cost, description=f"attribution report for {trigger.event_id}")
            remaining = self.tracker.remaining(scope)
            noisy_value = self.mechanism.noisy_amount(_conversion_value(trigger))
            reports.append(
                AttributionReport(
                    report_id=f"report_{uuid.uuid4().hex[:16]}",
                    cohort_id=cohort_id,
                    source_event=source,
                    trigger_event=trigger,
                    attribution_delay=(trigger.timestamp - source.timestamp).total_seconds(),
                    conversion_value=noisy_value,
                    timestamp=now,
                    privacy_budget=round(remaining.epsilon if remaining else 0.0, 6),
                )
            )
        return reports
