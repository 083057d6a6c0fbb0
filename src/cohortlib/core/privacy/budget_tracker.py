"""
Privacy budgets for many independent scopes.

Attribution keeps one scope per ``(cohort, reporting window)``; each scope
is backed by its own `PrivacyAccountant`. Usage alerts fire once per
threshold as a scope fills up.
"""
# 说明：多作用域隐私预算跟踪器（例如每个 (cohort, 时间窗口) 一个归因预算）。
# 职责：
# - register_scope / ensure_scope：登记作用域并绑定独立的 PrivacyAccountant
# - can_spend / spend / remaining / spent：按作用域查询与扣减
# - 预算使用比例跨越阈值时记录告警并回调（一次阈值只告警一次）
# 约定：
# - 所有公开方法在内部锁下执行，可被多个线程共享

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ..errors import BudgetError
from ..utils.param_validation import ensure, ensure_non_empty_str
from .privacy_accountant import PrivacyAccountant, PrivacyBudget, PrivacyEvent

DEFAULT_THRESHOLDS = (0.5, 0.8, 1.0)


class ScopeNotRegisteredError(BudgetError):
    """Budget scope was never registered."""

    kind = "unknown_budget_scope"


@dataclass(frozen=True)
class TrackedScope:
    kind: str
    identifier: str

    def __post_init__(self) -> None:
        ensure_non_empty_str(self.kind, "scope kind")
        ensure_non_empty_str(self.identifier, "scope identifier")

    def __str__(self) -> str:
        return f"{self.kind}:{self.identifier}"


@dataclass(frozen=True)
class BudgetAlert:
    scope: TrackedScope
    threshold: float
    ratio: float
    remaining: Optional[PrivacyBudget]

    @property
    def message(self) -> str:
        return f"{self.scope} used {self.ratio:.0%} of its budget (threshold {self.threshold:.0%})"


AlertHandler = Callable[[BudgetAlert], None]


class BudgetTracker:
    """Per-scope epsilon budgets with one-shot usage alerts."""

    def __init__(
        self,
        thresholds: Optional[Sequence[float]] = None,
        *,
        alert_handler: Optional[AlertHandler] = None,
    ):
        values = sorted({float(t) for t in (DEFAULT_THRESHOLDS if thresholds is None else thresholds)})
        ensure(all(t > 0 for t in values), "thresholds must be positive fractions")
        self._thresholds: Tuple[float, ...] = tuple(values)
        self._alert_handler = alert_handler
        self._accounts: Dict[TrackedScope, PrivacyAccountant] = {}
        self._triggered: Dict[TrackedScope, Set[float]] = {}
        self._alerts: List[BudgetAlert] = []
        self._lock = threading.RLock()

    def register_scope(self, kind: str, identifier: str, *, total_epsilon: float) -> TrackedScope:
        scope = TrackedScope(kind, identifier)
        with self._lock:
            self._accounts[scope] = PrivacyAccountant(total_epsilon, name=str(scope))
            self._triggered[scope] = set()
        return scope

    def ensure_scope(self, kind: str, identifier: str, *, total_epsilon: float) -> TrackedScope:
        scope = TrackedScope(kind, identifier)
        with self._lock:
            if scope not in self._accounts:
                self.register_scope(kind, identifier, total_epsilon=total_epsilon)
        return scope

    def scopes(self) -> Tuple[TrackedScope, ...]:
        with self._lock:
            return tuple(self._accounts)

    def get_accountant(self, scope: TrackedScope) -> PrivacyAccountant:
        with self._lock:
            try:
                return self._accounts[scope]
            except KeyError:
                raise ScopeNotRegisteredError(f"budget scope {scope} is not registered") from None

    def remaining(self, scope: TrackedScope) -> Optional[PrivacyBudget]:
        with self._lock:
            return self.get_accountant(scope).remaining

    def spent(self, scope: TrackedScope) -> PrivacyBudget:
        with self._lock:
            return self.get_accountant(scope).spent

    def can_spend(self, scope: TrackedScope, epsilon: float) -> bool:
        with self._lock:
            return self.get_accountant(scope).can_allocate(epsilon)

    @property
    def alerts(self) -> Tuple[BudgetAlert, ...]:
        with self._lock:
            return tuple(self._alerts)

    def spend(self, scope: TrackedScope, epsilon: float, *, description: Optional[str] = None) -> PrivacyEvent:
        """Charge `epsilon` to the scope; raises BudgetExceededError on overflow."""
        with self._lock:
            accountant = self.get_accountant(scope)
            event = accountant.add_event(epsilon, description=description)
            new_alerts = self._crossed_thresholds(scope, accountant)
        if self._alert_handler is not None:
            for alert in new_alerts:
                self._alert_handler(alert)
        return event

    def _crossed_thresholds(self, scope: TrackedScope, accountant: PrivacyAccountant) -> List[BudgetAlert]:
        total = accountant.total_budget
        if total is None or total.epsilon == 0:
            return []
        ratio = accountant.spent.epsilon / total.epsilon
        triggered = self._triggered[scope]
        fresh: List[BudgetAlert] = []
        for threshold in self._thresholds:
            # 浮点累加误差内视为已到达阈值
            if threshold in triggered or ratio < threshold - accountant.slack:
                continue
            triggered.add(threshold)
            fresh.append(BudgetAlert(scope, threshold, ratio, accountant.remaining))
        self._alerts.extend(fresh)
        return fresh
