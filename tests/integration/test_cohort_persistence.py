"""
Integration tests for encrypted persistence of cohort state and preferences.
"""
# 说明：cohort 状态与用户偏好的加密持久化测试
# 覆盖：
# - 新建引擎实例后可恢复访问记录、分配结果与维护时间
# - 底层键值存储中只有密文
# - 删除用户数据同时清除持久化状态
from __future__ import annotations

from cohortlib.cohorts import CohortEngine, CohortStore
from cohortlib.controls import PreferenceStore, PrivacyControls
from cohortlib.core.storage import EncryptedJSONStore, InMemoryKeyValueStore


def test_state_survives_restart(taxonomy, clock) -> None:
    kv = InMemoryKeyValueStore()
    secure = EncryptedJSONStore(kv)
    first = CohortEngine(taxonomy, store=CohortStore(secure), clock=clock)
    for _ in range(6):
        first.record_visit("u1", "spotify.com")
    first.run_weekly_maintenance("u1")
    PreferenceStore(secure).update("u1", data_retention_days=14)

    second = CohortEngine(taxonomy, store=CohortStore(secure), clock=clock)
    assert second.get_current_cohorts("u1") == first.get_current_cohorts("u1")
    assert second.last_maintenance("u1") == clock.now()
    assert second.get_visits("u1")[0].visit_count == 6
    assert PreferenceStore(secure).get("u1").data_retention_days == 14

    for key in kv.keys():
        payload = kv.get(key)
        assert b"spotify" not in payload
        assert b"Music" not in payload


def test_delete_removes_persisted_state(taxonomy, clock) -> None:
    kv = InMemoryKeyValueStore()
    secure = EncryptedJSONStore(kv)
    engine = CohortEngine(taxonomy, store=CohortStore(secure), clock=clock)
    for _ in range(4):
        engine.record_visit("u1", "netflix.com")
    engine.assign_cohorts("u1")
    controls = PrivacyControls(engine, PreferenceStore(secure))
    controls.toggle_cohort_status("u1", 2, False)
    assert len(kv) == 2

    controls.delete_all_data("u1")
    assert len(kv) == 0
    restored = CohortEngine(taxonomy, store=CohortStore(secure), clock=clock)
    assert restored.get_current_cohorts("u1") == ()
