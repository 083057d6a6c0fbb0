"""
Unit tests for API key issuance and lookup.
"""
# 说明：API key 注册表的单元测试。
# 覆盖：
# - key 格式：lpct_ + 32 位字母数字
# - 吊销、过期边界、未知权限
# - 导出记录不包含 key 本身

from __future__ import annotations

import re
from datetime import timedelta

import pytest

from cohortlib.api import APIKeyRecord, APIKeyRegistry, Permission, generate_api_key
from cohortlib.api.keys import is_well_formed_key
from cohortlib.core.errors import ValidationError

KEY_RE = re.compile(r"^lpct_[A-Za-z0-9]{32}$")


@pytest.fixture
def registry(clock):
    return APIKeyRegistry(clock)


def test_generated_keys_are_well_formed_and_unique() -> None:
    keys = {generate_api_key() for _ in range(50)}
    assert len(keys) == 50
    assert all(KEY_RE.match(k) for k in keys)


@pytest.mark.parametrize("key", ["", "lpct_short", "abcd_" + "a" * 32, "lpct_" + "!" * 32, None, 42])
def test_malformed_keys(key) -> None:
    assert not is_well_formed_key(key)


def test_create_and_validate(registry) -> None:
    record = registry.create_key("ads.example", ["cohort_access"])
    assert registry.validate_key(record.key)
    assert record.permissions == (Permission.COHORT_ACCESS,)
    assert len(registry) == 1
    assert not registry.validate_key(generate_api_key())


def test_revoke(registry) -> None:
    record = registry.create_key("ads.example", [Permission.METRICS_ACCESS])
    assert registry.revoke(record.key)
    assert not registry.validate_key(record.key)
    assert registry.get(record.key).is_active is False
    assert not registry.revoke(generate_api_key())


def test_expiry_boundary(registry, clock) -> None:
    record = registry.create_key("ads.example", ["cohort_access"], expires_at=clock.now() + timedelta(hours=1))
    clock.advance(minutes=59)
    assert registry.validate_key(record.key)
    clock.advance(minutes=1)
    assert not registry.validate_key(record.key)


def test_permissions_must_be_known(registry) -> None:
    with pytest.raises(ValidationError):
        registry.create_key("ads.example", ["superuser"])
    with pytest.raises(ValidationError):
        registry.create_key("ads.example", [])


def test_admin_and_wildcard_domain(registry, clock) -> None:
    record = registry.register(
        APIKeyRecord(key=generate_api_key(), domain="*", permissions=("admin",), created_at=clock.now())
    )
    assert record.allows(Permission.COHORT_ACCESS)
    assert record.allows(Permission.METRICS_ACCESS)
    assert record.allows_domain("anything.example")
    with pytest.raises(ValidationError):
        registry.register(APIKeyRecord(key="bad", domain="x", permissions=("admin",), created_at=clock.now()))


def test_export_hides_key(registry) -> None:
    record = registry.create_key("ads.example", ["metrics_access"])
    exported = record.to_dict()
    assert "key" not in exported
    assert record.key not in str(exported)
    assert exported["permissions"] == ["metrics_access"]
