"""
Epsilon accounting for a single privacy budget.

Every report or query that consumes budget is recorded as a `PrivacyEvent`;
an allocation that would exceed the total raises `BudgetExceededError` and
leaves the accountant untouched.
"""
# 说明：单个隐私预算的 epsilon 记账器。
# 职责：
# - PrivacyBudget：不可变的 epsilon 额度，减法下限为 0
# - PrivacyEvent：单次花费记录（额度、描述、附加信息）
# - PrivacyAccountant：累计花费、剩余额度、超额保护，支持 to_dict / from_dict
# 约定：
# - 所有发布的噪声都是纯 ε-DP，因此只记 epsilon
# - slack 为浮点累加误差容差（例如 10 次 0.1 恰好用尽 1.0）

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import BudgetError
from ..utils.param_validation import ParamValidationError

DEFAULT_SLACK = 1e-9


class BudgetExceededError(BudgetError):
    """Allocation would exceed the configured privacy budget."""

    kind = "budget_exceeded"


def _epsilon(value: Any) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError) as exc:
        raise ParamValidationError("epsilon must be a number") from exc
    if numeric < 0:
        raise ParamValidationError("epsilon must be non-negative")
    return numeric


@dataclass(frozen=True)
class PrivacyBudget:
    epsilon: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "epsilon", _epsilon(self.epsilon))

    def __add__(self, other: "PrivacyBudget") -> "PrivacyBudget":
        return PrivacyBudget(self.epsilon + other.epsilon)

    def __sub__(self, other: "PrivacyBudget") -> "PrivacyBudget":
        return PrivacyBudget(max(self.epsilon - other.epsilon, 0.0))

    def to_dict(self) -> Dict[str, float]:
        return {"epsilon": self.epsilon}


@dataclass(frozen=True)
class PrivacyEvent:
    epsilon: float
    description: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"epsilon": self.epsilon, "description": self.description, "metadata": dict(self.metadata)}


class PrivacyAccountant:
    """Track cumulative epsilon spending against an optional total."""

    def __init__(
        self,
        total_epsilon: Optional[float] = None,
        *,
        name: Optional[str] = None,
        slack: float = DEFAULT_SLACK,
    ):
        """
        Args:
            total_epsilon: budget ceiling; None means unbounded.
            name: label used in log messages and exports.
            slack: tolerance for floating point accumulation.
        """
        if slack < 0:
            raise ParamValidationError("slack must be non-negative")
        self.name = name or "accountant"
        self.total_budget: Optional[PrivacyBudget] = (
            None if total_epsilon is None else PrivacyBudget(total_epsilon)
        )
        self.slack = float(slack)
        self._events: List[PrivacyEvent] = []
        self._spent = PrivacyBudget()

    @property
    def spent(self) -> PrivacyBudget:
        return self._spent

    @property
    def remaining(self) -> Optional[PrivacyBudget]:
        if self.total_budget is None:
            return None
        return self.total_budget - self._spent

    @property
    def events(self) -> Tuple[PrivacyEvent, ...]:
        return tuple(self._events)

    def can_allocate(self, epsilon: float) -> bool:
        try:
            epsilon = _epsilon(epsilon)
        except ParamValidationError:
            return False
        if self.total_budget is None:
            return True
        return self._spent.epsilon + epsilon <= self.total_budget.epsilon + self.slack

    def add_event(
        self,
        epsilon: float,
        *,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PrivacyEvent:
        epsilon = _epsilon(epsilon)
        if not self.can_allocate(epsilon):
            remaining = self.remaining
            raise BudgetExceededError(
                f"{self.name}: requested epsilon {epsilon} with "
                f"{remaining.epsilon if remaining else 'unbounded'} remaining"
            )
        event = PrivacyEvent(epsilon=epsilon, description=description, metadata=dict(metadata or {}))
        self._events.append(event)
        self._spent = self._spent + PrivacyBudget(epsilon)
        return event

    def reset(self) -> None:
        self._events.clear()
        self._spent = PrivacyBudget()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "total_epsilon": None if self.total_budget is None else self.total_budget.epsilon,
            "spent": self._spent.epsilon,
            "events": [event.to_dict() for event in self._events],
            "slack": self.slack,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PrivacyAccountant":
        accountant = cls(
            payload.get("total_epsilon"),
            name=payload.get("name"),
            slack=payload.get("slack", DEFAULT_SLACK),
        )
        for item in payload.get("events", []):
            accountant._events.append(
                PrivacyEvent(
                    epsilon=_epsilon(item.get("epsilon", 0.0)),
                    description=item.get("description"),
                    metadata=dict(item.get("metadata") or {}),
                )
            )
        accountant._spent = PrivacyBudget(payload.get("spent", 0.0))
        return accountant

    def __repr__(self) -> str:
        total = None if self.total_budget is None else self.total_budget.epsilon
        return f"<PrivacyAccountant name={self.name!r} total={total} spent={self._spent.epsilon} events={len(self._events)}>"
