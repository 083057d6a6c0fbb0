"""
Unit tests for the domain visit table and the sensitive-domain filter.
"""
# 说明：访问表与敏感域名过滤的单元测试。
# 覆盖：
# - 敏感域名（精确名单、敏感顶级域、关键词、localhost / 内网 IP）永不记录
# - 同一域名只保留一条记录；计数在上限处饱和；乱序访问不回拨末次访问时间
# - 超出容量时淘汰最久未访问的域名；prune_older_than / recent

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cohortlib.cohorts import DomainVisitTable, is_sensitive_domain

T0 = datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "domain",
    ["chase.com", "www.irs.gov", "mit.edu", "mybankonline.com", "localhost", "192.168.1.10", "127.0.0.1", ""],
)
def test_sensitive_domains(domain) -> None:
    assert is_sensitive_domain(domain)


@pytest.mark.parametrize("domain", ["netflix.com", "spotify.com", "8.8.8.8"])
def test_regular_domains(domain) -> None:
    assert not is_sensitive_domain(domain)


def test_sensitive_visits_are_dropped() -> None:
    table = DomainVisitTable()
    assert table.record("https://www.chase.com/login", T0) is None
    assert len(table) == 0


def test_single_record_per_domain() -> None:
    table = DomainVisitTable(visit_count_cap=5)
    table.record("https://www.netflix.com/browse", T0)
    table.record("netflix.com", T0 + timedelta(hours=2), count=10)
    late = table.record("NETFLIX.com", T0 - timedelta(days=1))
    assert len(table) == 1
    assert late.visit_count == 5
    assert late.timestamp == T0 + timedelta(hours=2)
    assert late.first_visit == T0 - timedelta(days=1)


def test_eviction_drops_least_recent() -> None:
    table = DomainVisitTable(max_domains=2)
    table.record("a.com", T0)
    table.record("b.com", T0 + timedelta(minutes=1))
    table.record("a.com", T0 + timedelta(minutes=2))
    table.record("c.com", T0 + timedelta(minutes=3))
    assert "b.com" not in table
    assert {v.domain for v in table.visits()} == {"a.com", "c.com"}


def test_prune_and_recent() -> None:
    table = DomainVisitTable()
    table.record("old.com", T0 - timedelta(days=40))
    table.record("new.com", T0)
    assert [v.domain for v in table.recent(T0 - timedelta(days=1))] == ["new.com"]
    assert table.prune_older_than(T0 - timedelta(days=30)) == 1
    assert [v.domain for v in table.visits()] == ["new.com"]


def test_serialisation_roundtrip() -> None:
    table = DomainVisitTable()
    table.record("netflix.com", T0, count=3)
    restored = DomainVisitTable()
    restored.load(table.to_list())
    assert restored.get("netflix.com").visit_count == 3


def test_invalid_count_rejected() -> None:
    with pytest.raises(ValueError):
        DomainVisitTable().record("a.com", T0, count=0)
