"""
Records describing the topic taxonomy and domain classifications.
"""
# 说明：分类体系相关的不可变数据结构。
# 职责：
# - Topic：主题节点（id、名称、层级、父节点、敏感标记、描述）
# - DomainMapping：域名到主题的映射（含置信度与来源）
# - KeywordRule：关键词回退规则
# - DomainClassification：DomainMapper 的分类结果

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

MAPPING_SOURCES = ("manual", "keyword")


@dataclass(frozen=True)
class Topic:
    id: int
    name: str
    level: int
    parent_id: Optional[int] = None
    is_sensitive: bool = False
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "parent_id": self.parent_id,
            "is_sensitive": self.is_sensitive,
            "description": self.description,
        }


@dataclass(frozen=True)
class DomainMapping:
    domain: str
    topic_ids: Tuple[int, ...]
    confidence: float = 1.0
    source: str = "manual"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "topic_ids": list(self.topic_ids),
            "confidence": self.confidence,
            "source": self.source,
        }


@dataclass(frozen=True)
class KeywordRule:
    keywords: Tuple[str, ...]
    topic_ids: Tuple[int, ...]
    weight: float = 1.0


@dataclass(frozen=True)
class DomainClassification:
    """Outcome of classifying one domain; empty `topic_ids` means unmapped."""

    domain: str
    topic_ids: Tuple[int, ...] = ()
    confidence: float = 0.0
    source: str = "manual"
    matched_keywords: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_mapped(self) -> bool:
        return bool(self.topic_ids)
