"""
Topic taxonomy: an immutable forest of interest topics plus the domain map.

Responsibilities:
    * validate raw taxonomy payloads (ids, names, parents, cycles, levels)
    * expose traversal and lookup helpers over the topic forest
    * resolve domains to topic ids and report topic sensitivity
"""
# 说明：主题分类体系，加载后只读、进程内共享。
# 职责：
# - Taxonomy.from_dict / load_taxonomy：校验原始数据并构建不可变索引
# - get_topic / children / parent / ancestors / descendants / roots 等遍历接口
# - is_sensitive：主题本身或任一祖先为敏感主题即视为敏感
# - topics_for_domain：大小写不敏感的域名 → 主题 id 查询
# 约定：
# - 加载失败统一抛出 TaxonomyLoadError
# - 对未知 id 的遍历返回空元组或 None，不抛异常

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..core.errors import TaxonomyLoadError
from ..core.utils.logging import get_logger
from .models import DomainMapping, KeywordRule, Topic
from .normalize import normalize_domain

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _require_int_id(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise TaxonomyLoadError(f"{label} must be a positive integer, got {value!r}")
    return value


def _confidence(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TaxonomyLoadError(f"{label} confidence must be numeric")
    if not 0.0 <= float(value) <= 1.0:
        raise TaxonomyLoadError(f"{label} confidence must be within [0, 1]")
    return float(value)


class Taxonomy:
    """Read-only topic forest with domain and keyword mappings."""

    def __init__(
        self,
        topics: Mapping[int, Topic],
        domain_mappings: Mapping[str, DomainMapping],
        keyword_rules: Tuple[KeywordRule, ...] = (),
        *,
        version: str = "unversioned",
    ):
        self.version = version
        self._topics: Dict[int, Topic] = dict(topics)
        self._domains: Dict[str, DomainMapping] = dict(domain_mappings)
        self._keyword_rules: Tuple[KeywordRule, ...] = tuple(keyword_rules)
        self._children: Dict[int, Tuple[int, ...]] = {}
        self._by_name: Dict[str, int] = {}
        grouped: Dict[int, List[int]] = {}
        for topic in sorted(self._topics.values(), key=lambda t: t.id):
            self._by_name[topic.name.lower()] = topic.id
            if topic.parent_id is not None:
                grouped.setdefault(topic.parent_id, []).append(topic.id)
        self._children = {parent: tuple(ids) for parent, ids in grouped.items()}
        # 敏感性沿祖先链传播，加载时预先计算
        self._sensitive = frozenset(
            topic_id
            for topic_id, topic in self._topics.items()
            if topic.is_sensitive or any(a.is_sensitive for a in self.ancestors(topic_id))
        )

    # ------------------------------------------------------------------ loading
    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Taxonomy":
        """Validate a raw payload and build the taxonomy."""
        if not isinstance(payload, Mapping):
            raise TaxonomyLoadError("taxonomy payload must be a mapping")
        raw_topics = payload.get("topics")
        if not isinstance(raw_topics, list) or not raw_topics:
            raise TaxonomyLoadError("taxonomy requires a non-empty 'topics' list")

        topics: Dict[int, Topic] = {}
        for raw in raw_topics:
            topic = cls._parse_topic(raw)
            if topic.id in topics:
                raise TaxonomyLoadError(f"duplicate topic id {topic.id}")
            topics[topic.id] = topic
        cls._validate_hierarchy(topics)

        domains: Dict[str, DomainMapping] = {}
        for raw in payload.get("domain_mappings", []) or []:
            mapping = cls._parse_domain_mapping(raw, topics)
            domains[mapping.domain] = mapping

        rules: List[KeywordRule] = []
        for raw in payload.get("keyword_mappings", []) or []:
            rules.append(cls._parse_keyword_rule(raw, topics))

        version = str(payload.get("version", "unversioned"))
        logger.debug("taxonomy %s loaded: %d topics, %d domains", version, len(topics), len(domains))
        return cls(topics, domains, tuple(rules), version=version)

    @staticmethod
    def _parse_topic(raw: Any) -> Topic:
        if not isinstance(raw, Mapping):
            raise TaxonomyLoadError("topic entries must be mappings")
        topic_id = _require_int_id(raw.get("id"), "topic id")
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise TaxonomyLoadError(f"topic {topic_id} has an empty name")
        level = raw.get("level")
        if isinstance(level, bool) or not isinstance(level, int) or level < 0:
            raise TaxonomyLoadError(f"topic {topic_id} level must be a non-negative integer")
        parent_id = raw.get("parent_id")
        if parent_id is not None:
            parent_id = _require_int_id(parent_id, f"topic {topic_id} parent_id")
        is_sensitive = raw.get("is_sensitive", False)
        if not isinstance(is_sensitive, bool):
            raise TaxonomyLoadError(f"topic {topic_id} is_sensitive must be boolean")
        description = raw.get("description", "")
        if not isinstance(description, str):
            raise TaxonomyLoadError(f"topic {topic_id} description must be a string")
        return Topic(
            id=topic_id,
            name=name.strip(),
            level=level,
            parent_id=parent_id,
            is_sensitive=is_sensitive,
            description=description,
        )

    @staticmethod
    def _validate_hierarchy(topics: Mapping[int, Topic]) -> None:
        for topic in topics.values():
            if topic.parent_id is None:
                continue
            if topic.parent_id not in topics:
                raise TaxonomyLoadError(f"topic {topic.id} references unknown parent {topic.parent_id}")
        # 环检测：沿父链行走，步数超过主题总数即存在环
        for topic in topics.values():
            seen = {topic.id}
            current = topic
            while current.parent_id is not None:
                if current.parent_id in seen:
                    raise TaxonomyLoadError(f"cyclic parent chain detected at topic {topic.id}")
                seen.add(current.parent_id)
                current = topics[current.parent_id]
        for topic in topics.values():
            expected = 0 if topic.parent_id is None else topics[topic.parent_id].level + 1
            if topic.level != expected:
                raise TaxonomyLoadError(
                    f"topic {topic.id} has level {topic.level}, expected {expected}"
                )

    @staticmethod
    def _parse_topic_ids(raw: Any, topics: Mapping[int, Topic], label: str) -> Tuple[int, ...]:
        if not isinstance(raw, list) or not raw:
            raise TaxonomyLoadError(f"{label} requires a non-empty topic_ids list")
        ids: List[int] = []
        for value in raw:
            topic_id = _require_int_id(value, f"{label} topic id")
            if topic_id not in topics:
                raise TaxonomyLoadError(f"{label} references unknown topic {topic_id}")
            if topic_id not in ids:
                ids.append(topic_id)
        return tuple(ids)

    @classmethod
    def _parse_domain_mapping(cls, raw: Any, topics: Mapping[int, Topic]) -> DomainMapping:
        if not isinstance(raw, Mapping):
            raise TaxonomyLoadError("domain mapping entries must be mappings")
        domain = raw.get("domain")
        if not isinstance(domain, str) or not normalize_domain(domain):
            raise TaxonomyLoadError("domain mapping requires a domain")
        domain = normalize_domain(domain)
        topic_ids = cls._parse_topic_ids(raw.get("topic_ids"), topics, f"domain '{domain}'")
        confidence = _confidence(raw.get("confidence", 1.0), f"domain '{domain}'")
        return DomainMapping(domain=domain, topic_ids=topic_ids, confidence=confidence, source="manual")

    @classmethod
    def _parse_keyword_rule(cls, raw: Any, topics: Mapping[int, Topic]) -> KeywordRule:
        if not isinstance(raw, Mapping):
            raise TaxonomyLoadError("keyword mapping entries must be mappings")
        keywords = raw.get("keywords")
        if not isinstance(keywords, list) or not keywords or not all(isinstance(k, str) and k for k in keywords):
            raise TaxonomyLoadError("keyword mapping requires a non-empty list of keywords")
        topic_ids = cls._parse_topic_ids(raw.get("topic_ids"), topics, "keyword mapping")
        weight = raw.get("weight", 1.0)
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight <= 0:
            raise TaxonomyLoadError("keyword mapping weight must be positive")
        return KeywordRule(
            keywords=tuple(k.lower() for k in keywords),
            topic_ids=topic_ids,
            weight=float(weight),
        )

    # ------------------------------------------------------------------ lookups
    def __len__(self) -> int:
        return len(self._topics)

    def __contains__(self, topic_id: object) -> bool:
        return topic_id in self._topics

    def get_topic(self, topic_id: int) -> Optional[Topic]:
        return self._topics.get(topic_id)

    def get_topic_by_name(self, name: str) -> Optional[Topic]:
        topic_id = self._by_name.get(name.strip().lower())
        return None if topic_id is None else self._topics[topic_id]

    def topics(self) -> Tuple[Topic, ...]:
        return tuple(self._topics[i] for i in sorted(self._topics))

    # ------------------------------------------------------------------ traversal
    def children(self, topic_id: int) -> Tuple[Topic, ...]:
        return tuple(self._topics[i] for i in self._children.get(topic_id, ()))

    def parent(self, topic_id: int) -> Optional[Topic]:
        topic = self._topics.get(topic_id)
        if topic is None or topic.parent_id is None:
            return None
        return self._topics[topic.parent_id]

    def ancestors(self, topic_id: int) -> Tuple[Topic, ...]:
        """Ancestors ordered nearest first."""
        chain: List[Topic] = []
        current = self.parent(topic_id)
        while current is not None:
            chain.append(current)
            current = self.parent(current.id)
        return tuple(chain)

    def descendants(self, topic_id: int) -> Tuple[Topic, ...]:
        result: List[Topic] = []
        stack = list(reversed(self._children.get(topic_id, ())))
        while stack:
            child_id = stack.pop()
            result.append(self._topics[child_id])
            stack.extend(reversed(self._children.get(child_id, ())))
        return tuple(result)

    def roots(self) -> Tuple[Topic, ...]:
        return tuple(t for t in self.topics() if t.parent_id is None)

    def topics_by_level(self, level: int) -> Tuple[Topic, ...]:
        return tuple(t for t in self.topics() if t.level == level)

    def search(self, keyword: str) -> Tuple[Topic, ...]:
        needle = keyword.strip().lower()
        if not needle:
            return ()
        return tuple(
            t for t in self.topics() if needle in t.name.lower() or needle in t.description.lower()
        )

    # ------------------------------------------------------------------ sensitivity
    def is_sensitive(self, topic_id: int) -> bool:
        return topic_id in self._sensitive

    def non_sensitive_topics(self) -> Tuple[Topic, ...]:
        return tuple(t for t in self.topics() if t.id not in self._sensitive)

    # ------------------------------------------------------------------ domains
    def domain_mapping(self, domain: str) -> Optional[DomainMapping]:
        return self._domains.get(normalize_domain(domain))

    def topics_for_domain(self, domain: str) -> Tuple[int, ...]:
        mapping = self.domain_mapping(domain)
        return () if mapping is None else mapping.topic_ids

    def domain_mappings(self) -> Tuple[DomainMapping, ...]:
        return tuple(self._domains[d] for d in sorted(self._domains))

    def keyword_rules(self) -> Tuple[KeywordRule, ...]:
        return self._keyword_rules


def load_taxonomy(path: Optional[PathLike] = None) -> Taxonomy:
    """Load a taxonomy from `path`, or the bundled dataset when omitted."""
    try:
        if path is None:
            text = resources.files("cohortlib.taxonomy").joinpath("data/topic_taxonomy.json").read_text(
                encoding="utf-8"
            )
        else:
            text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise TaxonomyLoadError(f"unable to read taxonomy source: {exc}") from exc
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TaxonomyLoadError(f"taxonomy source is not valid JSON: {exc}") from exc
    return Taxonomy.from_dict(payload)
