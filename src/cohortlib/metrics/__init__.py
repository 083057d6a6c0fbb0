"""Privacy-preserving metrics: event log, aggregation and attribution."""
from .models import (
    EVENT_TYPES,
    AGGREGATION_LEVELS,
    GRANULARITIES,
    TimeRange,
    MetricsEvent,
    AggregatedMetrics,
    AttributionReport,
)
from .events import validate_event
from .storage import MetricsEventStore
from .attribution import AttributionReporter, pair_conversions
from .aggregator import MetricsAggregator, aggregation_level_for

__all__ = [
    "EVENT_TYPES",
    "AGGREGATION_LEVELS",
    "GRANULARITIES",
    "TimeRange",
    "MetricsEvent",
    "AggregatedMetrics",
    "AttributionReport",
    "validate_event",
    "MetricsEventStore",
    "AttributionReporter",
    "pair_conversions",
    "MetricsAggregator",
    "aggregation_level_for",
]
