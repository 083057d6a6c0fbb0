"""
Unit tests for the BudgetTracker helper.
"""
# 说明：BudgetTracker（多作用域预算跟踪器）的单元测试。
# 覆盖：
# - 花费记录与阈值告警回调
# - ensure_scope 首次使用时注册、之后复用
# - 未注册作用域错误

from __future__ import annotations

from typing import List

import pytest

from cohortlib.core.privacy import (
    BudgetAlert,
    BudgetExceededError,
    BudgetTracker,
    ScopeNotRegisteredError,
    TrackedScope,
)
from cohortlib.core.utils import ParamValidationError


def test_budget_tracker_spend_and_alert() -> None:
    alerts: List[BudgetAlert] = []
    tracker = BudgetTracker(thresholds=[0.5, 1.0], alert_handler=alerts.append)
    scope = tracker.register_scope("attribution", "cohort-a", total_epsilon=1.0)

    tracker.spend(scope, 0.4)
    assert tracker.remaining(scope).epsilon == pytest.approx(0.6)
    assert alerts == []

    tracker.spend(scope, 0.2)  # crosses 0.5
    tracker.spend(scope, 0.4)  # crosses 1.0
    assert [a.threshold for a in alerts] == [pytest.approx(0.5), pytest.approx(1.0)]
    assert tracker.alerts == tuple(alerts)
    assert alerts[0].message == "attribution:cohort-a used 60% of its budget (threshold 50%)"
    # 已超额时拒绝扣减，且不会重复告警
    with pytest.raises(BudgetExceededError):
        tracker.spend(scope, 0.1)
    assert len(tracker.alerts) == 2


def test_ensure_scope_registers_once() -> None:
    tracker = BudgetTracker()
    first = tracker.ensure_scope("attribution", "w1", total_epsilon=1.0)
    tracker.spend(first, 0.3)
    again = tracker.ensure_scope("attribution", "w1", total_epsilon=1.0)
    assert again == first
    assert tracker.spent(again).epsilon == pytest.approx(0.3)
    assert tracker.scopes() == (first,)


def test_unknown_scope_and_bad_identifiers() -> None:
    tracker = BudgetTracker()
    with pytest.raises(ScopeNotRegisteredError):
        tracker.spend(TrackedScope("user", "unknown"), 0.1)
    with pytest.raises(ParamValidationError):
        TrackedScope("", "x")
    with pytest.raises(ParamValidationError):
        BudgetTracker(thresholds=[0.0])
