"""
Domain classification against the taxonomy.

Resolution order: exact mapping, parent-domain mapping (reduced confidence),
keyword fallback (capped confidence), otherwise unmapped.
"""
# 说明：域名分类器。
# 职责：
# - classify：规范化域名后依次尝试精确映射 → 父域映射（置信度 ×0.8）→ 关键词回退
# - add_mapping / remove_mapping：运行期维护自定义映射（校验主题 id，置信度截断到 [0,1]）
# - domains_for_topic：反查映射到某主题的域名
# 约定：
# - 关键词回退最多返回 3 个主题，置信度上限 0.7

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..core.errors import ValidationError
from ..core.utils.logging import get_logger
from .models import DomainClassification, DomainMapping
from .normalize import normalize_domain
from .taxonomy import Taxonomy

logger = get_logger(__name__)

PARENT_DOMAIN_FACTOR = 0.8
KEYWORD_CONFIDENCE_CAP = 0.7
KEYWORD_MAX_TOPICS = 3


class DomainMapper:
    """Classify domains into taxonomy topics."""

    def __init__(self, taxonomy: Taxonomy):
        self.taxonomy = taxonomy
        self._mappings: Dict[str, DomainMapping] = {m.domain: m for m in taxonomy.domain_mappings()}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ classification
    def classify(self, domain: str) -> DomainClassification:
        normalized = normalize_domain(domain)
        if not normalized:
            return DomainClassification(domain=normalized)

        mapping = self._lookup(normalized)
        if mapping is not None:
            return DomainClassification(
                domain=normalized,
                topic_ids=mapping.topic_ids,
                confidence=mapping.confidence,
                source=mapping.source,
            )

        parent = self._parent_mapping(normalized)
        if parent is not None:
            return DomainClassification(
                domain=normalized,
                topic_ids=parent.topic_ids,
                confidence=parent.confidence * PARENT_DOMAIN_FACTOR,
                source=parent.source,
            )

        return self._classify_by_keywords(normalized)

    def classify_many(self, domains: Iterable[str]) -> Dict[str, DomainClassification]:
        return {domain: self.classify(domain) for domain in domains}

    def _lookup(self, domain: str) -> Optional[DomainMapping]:
        with self._lock:
            return self._mappings.get(domain)

    def _parent_mapping(self, domain: str) -> Optional[DomainMapping]:
        # news.example.com → example.com；不回退到单独的顶级域
        parts = domain.split(".")
        for index in range(1, len(parts) - 1):
            mapping = self._lookup(".".join(parts[index:]))
            if mapping is not None:
                return mapping
        return None

    def _classify_by_keywords(self, domain: str) -> DomainClassification:
        scores: Dict[int, float] = {}
        matched: List[str] = []
        for rule in self.taxonomy.keyword_rules():
            hits = [keyword for keyword in rule.keywords if keyword in domain]
            if not hits:
                continue
            score = len(hits) / len(rule.keywords) * rule.weight
            for topic_id in rule.topic_ids:
                scores[topic_id] = scores.get(topic_id, 0.0) + score
            for keyword in hits:
                if keyword not in matched:
                    matched.append(keyword)
        if not scores:
            return DomainClassification(domain=domain, source="keyword")

        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))[:KEYWORD_MAX_TOPICS]
        return DomainClassification(
            domain=domain,
            topic_ids=tuple(topic_id for topic_id, _ in ranked),
            confidence=min(KEYWORD_CONFIDENCE_CAP, ranked[0][1] / 2),
            source="keyword",
            matched_keywords=tuple(matched),
        )

    # ------------------------------------------------------------------ maintenance
    def add_mapping(self, domain: str, topic_ids: Iterable[int], confidence: float = 1.0) -> DomainMapping:
        normalized = normalize_domain(domain)
        if not normalized:
            raise ValidationError("domain is required")
        ids = tuple(dict.fromkeys(topic_ids))
        if not ids:
            raise ValidationError("at least one topic id is required")
        unknown = [topic_id for topic_id in ids if self.taxonomy.get_topic(topic_id) is None]
        if unknown:
            raise ValidationError(f"unknown topic ids: {unknown}")
        mapping = DomainMapping(
            domain=normalized,
            topic_ids=ids,
            confidence=min(1.0, max(0.0, float(confidence))),
            source="manual",
        )
        with self._lock:
            self._mappings[normalized] = mapping
        logger.debug("domain mapping added for %s -> %s", normalized, ids)
        return mapping

    def remove_mapping(self, domain: str) -> bool:
        with self._lock:
            return self._mappings.pop(normalize_domain(domain), None) is not None

    def get_mapping(self, domain: str) -> Optional[DomainMapping]:
        return self._lookup(normalize_domain(domain))

    def domains_for_topic(self, topic_id: int) -> Tuple[str, ...]:
        with self._lock:
            return tuple(sorted(d for d, m in self._mappings.items() if topic_id in m.topic_ids))

    def mapped_domains(self) -> Set[str]:
        with self._lock:
            return set(self._mappings)
