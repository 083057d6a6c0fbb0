"""Differential-privacy primitives: Laplace noise and epsilon budgets."""
from .laplace import LaplaceMechanism
from .privacy_accountant import (
    PrivacyAccountant,
    PrivacyBudget,
    PrivacyEvent,
    BudgetExceededError,
)
from .budget_tracker import (
    BudgetTracker,
    BudgetAlert,
    TrackedScope,
    ScopeNotRegisteredError,
)

__all__ = [
    "LaplaceMechanism",
    "PrivacyAccountant",
    "PrivacyBudget",
    "PrivacyEvent",
    "BudgetExceededError",
    "BudgetTracker",
    "BudgetAlert",
    "TrackedScope",
    "ScopeNotRegisteredError",
]
