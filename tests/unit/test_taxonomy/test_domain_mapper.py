"""
Unit tests for domain classification.
"""
# 说明：域名分类器的单元测试。
# 覆盖：
# - 精确匹配、父域名回退（置信度 ×0.8，不回退到顶级域）、关键词推断
# - normalize_domain 的规范化规则
# - add_mapping / remove_mapping / domains_for_topic 维护接口

from __future__ import annotations

import pytest

from cohortlib.core.errors import ValidationError
from cohortlib.taxonomy import DomainMapper, normalize_domain


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://www.Netflix.com/browse?x=1", "netflix.com"),
        ("user@shop.example.com:8443", "shop.example.com"),
        ("  EXAMPLE.org.  ", "example.org"),
        ("http://", ""),
    ],
)
def test_normalize_domain(raw, expected) -> None:
    assert normalize_domain(raw) == expected


def test_exact_mapping(taxonomy) -> None:
    result = DomainMapper(taxonomy).classify("www.spotify.com")
    assert result.topic_ids == (6, 8)
    assert result.confidence == pytest.approx(0.95)
    assert result.source == "manual"


def test_parent_domain_fallback(taxonomy) -> None:
    result = DomainMapper(taxonomy).classify("fantasy.espn.com")
    assert result.topic_ids == (29,)
    assert result.confidence == pytest.approx(0.95 * 0.8)


def test_keyword_classification(taxonomy) -> None:
    result = DomainMapper(taxonomy).classify("cryptobitcoinhub.org")
    assert result.source == "keyword"
    assert result.topic_ids == (24,)
    assert result.confidence == pytest.approx(0.25)
    assert set(result.matched_keywords) == {"crypto", "bitcoin"}


def test_unmapped_domain(taxonomy) -> None:
    result = DomainMapper(taxonomy).classify("qwzx.example")
    assert not result.is_mapped
    assert result.confidence == 0.0


def test_mapping_maintenance(taxonomy) -> None:
    mapper = DomainMapper(taxonomy)
    mapping = mapper.add_mapping("www.Letterboxd.com", [2, 2, 3], confidence=1.7)
    assert mapping.domain == "letterboxd.com"
    assert mapping.topic_ids == (2, 3)
    assert mapping.confidence == 1.0
    assert "letterboxd.com" in mapper.domains_for_topic(3)
    assert mapper.remove_mapping("letterboxd.com") is True
    assert mapper.get_mapping("letterboxd.com") is None
    # 映射只作用于 mapper 自身，不修改共享的 taxonomy
    assert taxonomy.domain_mapping("letterboxd.com") is None


@pytest.mark.parametrize("domain, topics", [("", [2]), ("a.com", []), ("a.com", [999])])
def test_add_mapping_validation(taxonomy, domain, topics) -> None:
    with pytest.raises(ValidationError):
        DomainMapper(taxonomy).add_mapping(domain, topics)
