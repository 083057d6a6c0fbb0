"""
Unit tests for user sharing preferences.
"""
# 说明：用户共享偏好的单元测试。
# 覆盖：
# - 默认值与字段校验
# - with_topic：启用 / 禁用单个主题（去重）
# - PreferenceStore：未保存时返回默认值；update 拒绝未知字段；加密存储往返

from __future__ import annotations

import pytest

from cohortlib.controls import PreferenceStore, UserPreferences
from cohortlib.core.errors import ValidationError


def test_defaults() -> None:
    prefs = UserPreferences()
    assert prefs.sharing_enabled
    assert prefs.disabled_topics == ()
    assert prefs.data_retention_days == 21


@pytest.mark.parametrize(
    "kwargs",
    [
        {"cohorts_enabled": "yes"},
        {"data_retention_days": 0},
        {"data_retention_days": True},
        {"disabled_topics": ("2",)},
        {"share_with_advertisers": None},
    ],
)
def test_invalid_preferences_rejected(kwargs) -> None:
    with pytest.raises(ValidationError):
        UserPreferences(**kwargs)


def test_with_topic_toggles() -> None:
    prefs = UserPreferences().with_topic(2, False).with_topic(2, False).with_topic(10, False)
    assert prefs.disabled_topics == (2, 10)
    assert prefs.with_topic(2, True).disabled_topics == (10,)


def test_sharing_requires_both_switches() -> None:
    assert not UserPreferences(share_with_advertisers=False).sharing_enabled
    assert not UserPreferences(cohorts_enabled=False).sharing_enabled


def test_store_roundtrip_and_update(secure_store) -> None:
    store = PreferenceStore(secure_store)
    assert store.get("u1") == UserPreferences()
    store.save("u1", UserPreferences(disabled_topics=(6,)))
    assert store.get("u1").disabled_topics == (6,)
    updated = store.update("u1", share_with_advertisers=False)
    assert updated.disabled_topics == (6,)
    assert store.get("u1").sharing_enabled is False
    with pytest.raises(ValidationError):
        store.update("u1", colour="blue")
    store.delete("u1")
    assert store.get("u1") == UserPreferences()
