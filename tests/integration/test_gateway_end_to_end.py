"""
Integration tests for the browse -> assign -> share -> measure pipeline.
"""
# 说明：从浏览记录到对外指标查询的端到端测试
# 覆盖：
# - 访问记录 -> 每周维护 -> 网关共享匿名标识
# - 以共享标识记录事件 -> 带认证的指标查询（达标桶加噪、未达标桶置 0）
# - 用户禁用主题 / 删除数据后网关不再共享
# - 审计记录覆盖全部调用
from __future__ import annotations

from datetime import timedelta

import pytest

from cohortlib.api import ExternalAPIGateway, RequestContext
from cohortlib.cohorts import CohortEngine, CohortStore
from cohortlib.controls import PreferenceStore, PrivacyControls
from cohortlib.metrics import MetricsAggregator, MetricsEvent, TimeRange


@pytest.fixture
def system(taxonomy, clock, secure_store):
    engine = CohortEngine(taxonomy, store=CohortStore(secure_store), clock=clock)
    preferences = PreferenceStore(secure_store)
    aggregator = MetricsAggregator(rng=2024, clock=clock)
    gateway = ExternalAPIGateway(engine, aggregator, preferences=preferences, clock=clock)
    controls = PrivacyControls(engine, preferences)
    key = gateway.registry.create_key("ads.example", ["cohort_access", "metrics_access"]).key
    return engine, aggregator, gateway, controls, key


def _ctx(key, clock, request_type="advertising"):
    return RequestContext("ads.example", key, request_type, clock.now())


def _browse(engine, clock, days=3):
    for day in range(days):
        for domain, visits in (("netflix.com", 4), ("espn.com", 3), ("booking.com", 2)):
            for _ in range(visits):
                engine.record_visit("local", domain, clock.now() - timedelta(days=day))


def test_full_pipeline(system, clock) -> None:
    engine, aggregator, gateway, controls, key = system
    _browse(engine, clock)
    assert engine.run_weekly_maintenance("local")
    assert not engine.run_weekly_maintenance("local")

    shared = gateway.get_cohort_ids(_ctx(key, clock))
    assert shared.success
    cohort_ids = shared.data
    assert 1 <= len(cohort_ids) <= 3

    # 第一个 cohort 有足够的事件，第二个没有
    busy, quiet = cohort_ids[0], "cohort_" + "b" * 24
    for i in range(120):
        kind = "impression" if i < 100 else "click"
        aggregator.record_event(
            MetricsEvent(f"e{i}", kind, busy, clock.now() - timedelta(minutes=i), "publisher.example")
        )
    window = TimeRange(clock.now() - timedelta(days=1), clock.now())
    response = gateway.get_aggregated_metrics_response([busy, quiet], window, _ctx(key, clock, "measurement"))
    assert response.success
    busy_metric, quiet_metric = response.data.metrics
    assert busy_metric.privacy_threshold_met and busy_metric.data_points == 120
    assert busy_metric.impressions >= 0
    assert not quiet_metric.privacy_threshold_met
    assert (quiet_metric.impressions, quiet_metric.clicks, quiet_metric.conversions) == (0, 0, 0)
    assert response.data.aggregation_level == "low"
    assert len(gateway.audit_entries("ads.example")) == 2


def test_user_controls_flow_through_gateway(system, clock) -> None:
    engine, _, gateway, controls, key = system
    _browse(engine, clock)
    engine.assign_cohorts("local")
    before = gateway.get_cohort_ids(_ctx(key, clock)).data

    top = controls.display_current_cohorts("local")[0]
    controls.toggle_cohort_status("local", top["topic_id"], False)
    after = gateway.get_cohort_ids(_ctx(key, clock)).data
    assert gateway.anonymizer.anonymize(top["topic_id"], top["topic_name"]) not in after
    assert len(after) <= len(before)

    controls.delete_all_data("local")
    assert gateway.get_cohort_ids(_ctx(key, clock)).data == []
    assert engine.get_visits("local") == ()


def test_identifiers_rotate_weekly(system, clock) -> None:
    engine, _, gateway, _, key = system
    _browse(engine, clock)
    engine.assign_cohorts("local")
    this_week = set(gateway.get_cohort_ids(_ctx(key, clock)).data)
    clock.advance(days=7)
    next_week = set(gateway.get_cohort_ids(_ctx(key, clock)).data)
    assert this_week and next_week
    assert this_week.isdisjoint(next_week)
