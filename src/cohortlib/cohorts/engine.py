"""
Cohort assignment engine.

Turns a user's domain-visit summary into at most five interest cohorts,
rotates them weekly and exposes the (at most three) cohorts that may leave
the device.

Scoring per (domain, topic) pair::

    frequency    = log1p(min(count, cap)) / log1p(cap)
    recency      = exp(-days_since_last_visit / recency_decay_days)
    domain_score = (0.6 * frequency + 0.4 * recency) * mapping_confidence

A domain mapped to ``n`` eligible topics contributes ``domain_score / n`` to
each; topic confidence is the topic score divided by the best topic score.
"""
# 说明：人群分配引擎。
# 职责：
# - record_visit：记录一次页面访问（敏感域名直接丢弃）
# - score_topics / select_topics：纯函数式打分与 Top-N 选择（按分数降序、主题 id 升序打破平局）
# - assign_cohorts：用选择结果整体替换用户的分配集合
# - run_weekly_maintenance：7 天内重复调用为空操作；否则清理过期分配与过旧访问、重新打分并合并
# - get_current_cohorts / get_cohorts_for_sharing：只读快照（后者最多 3 个、最近分配优先）
# 约定：
# - 每个用户一把写锁（在注册表锁下创建）；读取返回不可变元组快照，无需加锁
# - 敏感主题及其后代永不参与分配

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.errors import ValidationError
from ..core.utils.clock import Clock, SystemClock, ensure_utc
from ..core.utils.config import CohortEngineConfig
from ..core.utils.logging import get_logger
from ..core.utils.param_validation import ensure_non_empty_str
from ..taxonomy.domain_mapper import DomainMapper
from ..taxonomy.taxonomy import Taxonomy
from .models import CohortAssignment, DomainVisit
from .store import CohortState, CohortStore
from .visits import DomainVisitTable

logger = get_logger(__name__)


@dataclass
class _UserState:
    visits: DomainVisitTable
    assignments: Tuple[CohortAssignment, ...] = ()
    last_maintenance: Optional[datetime] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class CohortEngine:
    """Assign, rotate and expose interest cohorts for many users."""

    def __init__(
        self,
        taxonomy: Taxonomy,
        *,
        mapper: Optional[DomainMapper] = None,
        config: Optional[CohortEngineConfig] = None,
        store: Optional[CohortStore] = None,
        clock: Optional[Clock] = None,
    ):
        self.taxonomy = taxonomy
        self.mapper = mapper or DomainMapper(taxonomy)
        self.config = config or CohortEngineConfig()
        self.store = store
        self.clock: Clock = clock or SystemClock()
        self._users: Dict[str, _UserState] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------ state
    def _state(self, user_id: str) -> _UserState:
        ensure_non_empty_str(user_id, "user_id", error=ValidationError)
        with self._registry_lock:
            state = self._users.get(user_id)
        if state is not None:
            return state
        # 解密读取在注册表锁外完成；并发首访时以先插入者为准
        loaded = self._new_state()
        if self.store is not None:
            persisted = self.store.load(user_id)
            if persisted is not None:
                loaded.visits.load(persisted.visits)
                loaded.assignments = persisted.assignments
                loaded.last_maintenance = persisted.last_maintenance
        with self._registry_lock:
            return self._users.setdefault(user_id, loaded)

    def _new_state(self) -> _UserState:
        return _UserState(
            visits=DomainVisitTable(
                visit_count_cap=self.config.visit_count_cap,
                max_domains=self.config.max_tracked_domains,
            )
        )

    def _persist(self, user_id: str, state: _UserState) -> None:
        if self.store is None:
            return
        self.store.save(
            user_id,
            CohortState(
                visits=state.visits.to_list(),
                assignments=state.assignments,
                last_maintenance=state.last_maintenance,
            ),
        )

    # ------------------------------------------------------------------ visits
    def record_visit(self, user_id: str, domain: str, timestamp: Optional[datetime] = None) -> Optional[DomainVisit]:
        """Record one page visit; sensitive or empty domains are silently dropped."""
        when = ensure_utc(timestamp) if timestamp is not None else self.clock.now()
        state = self._state(user_id)
        with state.lock:
            visit = state.visits.record(domain, when)
            if visit is not None:
                self._persist(user_id, state)
        return visit

    def get_visits(self, user_id: str) -> Tuple[DomainVisit, ...]:
        return self._state(user_id).visits.visits()

    # ------------------------------------------------------------------ scoring
    def _eligible_topics(self, domain: str) -> Tuple[Tuple[int, ...], float]:
        classification = self.mapper.classify(domain)
        if not classification.is_mapped:
            return (), 0.0
        topic_ids = tuple(
            t for t in classification.topic_ids
            if self.taxonomy.get_topic(t) is not None and not self.taxonomy.is_sensitive(t)
        )
        return topic_ids, classification.confidence

    def score_topics(self, visits: Iterable[DomainVisit], now: Optional[datetime] = None) -> Dict[int, float]:
        """Raw (unnormalised) topic scores for a set of visit records."""
        now = ensure_utc(now) if now is not None else self.clock.now()
        cfg = self.config
        cap = cfg.visit_count_cap
        scores: Dict[int, float] = {}
        for visit in visits:
            if visit.visit_count < cfg.min_visits:
                continue
            topic_ids, confidence = self._eligible_topics(visit.domain)
            if not topic_ids or confidence <= 0:
                continue
            frequency = math.log1p(min(visit.visit_count, cap)) / math.log1p(cap)
            days = max(0.0, (now - ensure_utc(visit.timestamp)).total_seconds() / 86400.0)
            recency = math.exp(-days / cfg.recency_decay_days)
            domain_score = (cfg.frequency_weight * frequency + cfg.recency_weight * recency) * confidence
            share = domain_score / len(topic_ids)
            for topic_id in topic_ids:
                scores[topic_id] = scores.get(topic_id, 0.0) + share
        return scores

    def select_topics(
        self, visits: Iterable[DomainVisit], now: Optional[datetime] = None
    ) -> List[Tuple[int, float]]:
        """Top topics as ``(topic_id, confidence)`` pairs, best first."""
        scores = {t: s for t, s in self.score_topics(visits, now).items() if s > 0}
        if not scores:
            return []
        max_score = max(scores.values())
        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        return [(topic_id, min(1.0, score / max_score)) for topic_id, score in ranked[: self.config.max_cohorts]]

    def _build_assignments(
        self, selected: List[Tuple[int, float]], now: datetime
    ) -> Tuple[CohortAssignment, ...]:
        return tuple(
            CohortAssignment.create(
                topic_id=topic_id,
                topic_name=self.taxonomy.get_topic(topic_id).name,
                confidence=confidence,
                assigned_date=now,
                retention_days=self.config.retention_days,
            )
            for topic_id, confidence in selected
        )

    # ------------------------------------------------------------------ assignment
    def assign_cohorts(
        self, user_id: str, visits: Optional[Iterable[DomainVisit]] = None
    ) -> Tuple[CohortAssignment, ...]:
        """
        Replace the user's cohort set with a fresh selection.

        - Args:
            - user_id: owner of the cohort set.
            - visits: visit records to score; defaults to the user's own table.
        - Returns:
            - the new assignments, best first (empty when nothing qualifies).
        """
        now = self.clock.now()
        state = self._state(user_id)
        with state.lock:
            source = tuple(visits) if visits is not None else state.visits.visits()
            state.assignments = self._build_assignments(self.select_topics(source, now), now)
            self._persist(user_id, state)
            assigned = state.assignments
        logger.info("assigned %d cohorts", len(assigned), extra={"user_id": user_id})
        return assigned

    def run_weekly_maintenance(self, user_id: str) -> bool:
        """Rotate cohorts; returns False when the last pass is under a week old."""
        now = self.clock.now()
        cfg = self.config
        state = self._state(user_id)
        with state.lock:
            last = state.last_maintenance
            if last is not None and now - last < timedelta(days=cfg.maintenance_interval_days):
                return False

            pruned = state.visits.prune_older_than(now - timedelta(days=cfg.visit_retention_days))
            live = {a.topic_id: a for a in state.assignments if a.is_live(now)}
            selected = self.select_topics(state.visits.recent(now - timedelta(days=cfg.retention_days)), now)

            merged: List[CohortAssignment] = []
            fresh: List[Tuple[int, float]] = []
            for topic_id, confidence in selected:
                if topic_id in live:
                    merged.append(live[topic_id])
                else:
                    fresh.append((topic_id, confidence))
            merged.extend(self._build_assignments(fresh, now))

            state.assignments = tuple(merged)
            state.last_maintenance = now
            self._persist(user_id, state)
        logger.info(
            "weekly maintenance: %d cohorts kept, %d added, %d visit records pruned",
            len(merged) - len(fresh),
            len(fresh),
            pruned,
            extra={"user_id": user_id},
        )
        return True

    def last_maintenance(self, user_id: str) -> Optional[datetime]:
        return self._state(user_id).last_maintenance

    # ------------------------------------------------------------------ queries
    def get_current_cohorts(self, user_id: str) -> Tuple[CohortAssignment, ...]:
        now = self.clock.now()
        return tuple(a for a in self._state(user_id).assignments if a.is_live(now))

    def get_cohorts_for_sharing(self, user_id: str) -> Tuple[CohortAssignment, ...]:
        """At most ``shared_cohorts`` live cohorts, most recently assigned first."""
        live = self.get_current_cohorts(user_id)
        ordered = sorted(live, key=lambda a: (-a.assigned_date.timestamp(), -a.confidence, a.topic_id))
        return tuple(ordered[: self.config.shared_cohorts])

    # ------------------------------------------------------------------ reset
    def clear_cohorts(self, user_id: str) -> None:
        state = self._state(user_id)
        with state.lock:
            state.assignments = ()
            self._persist(user_id, state)

    def delete_user_data(self, user_id: str) -> None:
        """Forget visits, cohorts and maintenance history for the user."""
        state = self._state(user_id)
        with state.lock:
            state.visits.clear()
            state.assignments = ()
            state.last_maintenance = None
            if self.store is not None:
                self.store.delete(user_id)
        logger.info("user data deleted", extra={"user_id": user_id})

    def users(self) -> Tuple[str, ...]:
        with self._registry_lock:
            return tuple(sorted(self._users))
