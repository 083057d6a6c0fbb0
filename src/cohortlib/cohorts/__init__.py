"""Domain-visit tracking and interest cohort assignment."""
from .models import DomainVisit, CohortAssignment
from .visits import DomainVisitTable, is_sensitive_domain
from .store import CohortState, CohortStore
from .engine import CohortEngine

__all__ = [
    "DomainVisit",
    "CohortAssignment",
    "DomainVisitTable",
    "is_sensitive_domain",
    "CohortState",
    "CohortStore",
    "CohortEngine",
]
