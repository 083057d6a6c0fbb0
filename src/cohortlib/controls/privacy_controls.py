"""
User-facing privacy controls over cohorts and sharing preferences.

Responsibilities:
    * list current cohorts with their enabled/disabled state
    * toggle individual topics and update global sharing settings
    * export and delete everything held for a user
"""
# 说明：面向用户的隐私控制入口。
# 职责：
# - display_current_cohorts：展示当前 cohort（最近分配优先），标注是否处于启用状态
# - toggle_cohort_status：启用 / 禁用单个主题
# - get_privacy_settings / update_privacy_settings：读取与更新共享偏好
# - get_cohort_statistics：总数、启用数、禁用数、一周内即将过期数
# - export_user_data / delete_all_data：导出与彻底删除用户数据

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..cohorts.engine import CohortEngine
from ..core.errors import ValidationError
from ..core.utils.clock import Clock
from ..core.utils.logging import get_logger
from ..core.utils.serialization import to_utc_iso
from .preferences import PreferenceStore, UserPreferences

logger = get_logger(__name__)

EXPORT_VERSION = "1.0"

DATA_USAGE_EXPLANATION = (
    "Browsing activity is analysed locally to infer broad interest topics. "
    "Only anonymized cohort identifiers, never the sites you visit, are shared with advertisers; "
    "at most three cohorts are shared and every assignment expires after three weeks. "
    "You can disable any topic, turn sharing off entirely, export your data or delete it at any time."
)


class PrivacyControls:
    """Per-user controls backed by the cohort engine and the preference store."""

    def __init__(self, engine: CohortEngine, preferences: Optional[PreferenceStore] = None, *, clock: Optional[Clock] = None):
        self.engine = engine
        self.preferences = preferences or PreferenceStore()
        self.clock: Clock = clock or engine.clock

    def display_current_cohorts(self, user_id: str) -> List[Dict[str, Any]]:
        prefs = self.preferences.get(user_id)
        rows: List[Dict[str, Any]] = []
        for cohort in self.engine.get_current_cohorts(user_id):
            topic = self.engine.taxonomy.get_topic(cohort.topic_id)
            if topic is None:
                continue
            rows.append(
                {
                    "topic_id": cohort.topic_id,
                    "topic_name": cohort.topic_name,
                    "description": topic.description or f"Interest in {topic.name}",
                    "is_active": prefs.cohorts_enabled and cohort.topic_id not in prefs.disabled_topics,
                    "assigned_date": to_utc_iso(cohort.assigned_date),
                    "expiry_date": to_utc_iso(cohort.expiry_date),
                    "can_disable": True,
                    "_assigned": cohort.assigned_date,
                }
            )
        rows.sort(key=lambda row: row["_assigned"], reverse=True)
        for row in rows:
            del row["_assigned"]
        return rows

    def toggle_cohort_status(self, user_id: str, topic_id: int, enabled: bool) -> UserPreferences:
        if self.engine.taxonomy.get_topic(topic_id) is None:
            raise ValidationError(f"unknown topic id {topic_id}")
        with_topic = self.preferences.get(user_id).with_topic(topic_id, enabled)
        self.preferences.save(user_id, with_topic)
        logger.info("topic %s %s", topic_id, "enabled" if enabled else "disabled", extra={"user_id": user_id})
        return with_topic

    def get_privacy_settings(self, user_id: str) -> UserPreferences:
        return self.preferences.get(user_id)

    def update_privacy_settings(self, user_id: str, preferences: UserPreferences) -> None:
        if not isinstance(preferences, UserPreferences):
            raise ValidationError("preferences must be a UserPreferences instance")
        self.preferences.save(user_id, preferences)

    def get_cohort_statistics(self, user_id: str) -> Dict[str, int]:
        prefs = self.preferences.get(user_id)
        cohorts = self.engine.get_current_cohorts(user_id)
        horizon = self.clock.now() + timedelta(days=7)
        disabled = sum(1 for c in cohorts if c.topic_id in prefs.disabled_topics)
        return {
            "total_cohorts": len(cohorts),
            "active_cohorts": len(cohorts) - disabled if prefs.cohorts_enabled else 0,
            "disabled_cohorts": disabled,
            "expiring_cohorts": sum(1 for c in cohorts if c.expiry_date <= horizon),
        }

    def export_user_data(self, user_id: str) -> Dict[str, Any]:
        return {
            "cohorts": [c.to_dict() for c in self.engine.get_current_cohorts(user_id)],
            "preferences": self.preferences.get(user_id).to_dict(),
            "export_date": to_utc_iso(self.clock.now()),
            "version": EXPORT_VERSION,
        }

    def delete_all_data(self, user_id: str) -> None:
        self.engine.delete_user_data(user_id)
        self.preferences.delete(user_id)

    @staticmethod
    def data_usage_explanation() -> str:
        return DATA_USAGE_EXPLANATION
