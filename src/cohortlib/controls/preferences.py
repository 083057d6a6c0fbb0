"""
User sharing preferences and their encrypted persistence.
"""
# 说明：用户共享偏好。
# 职责：
# - UserPreferences：是否启用 cohort、禁用主题列表、数据保留天数、是否向广告方共享
# - PreferenceStore：按用户读写偏好（EncryptedJSONStore），未保存过时返回默认值

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from ..core.errors import ValidationError
from ..core.storage.secure_store import EncryptedJSONStore
from ..core.utils.param_validation import ensure

KEY_PREFIX = "preferences:"


@dataclass(frozen=True)
class UserPreferences:
    cohorts_enabled: bool = True
    disabled_topics: Tuple[int, ...] = field(default_factory=tuple)
    data_retention_days: int = 21
    share_with_advertisers: bool = True

    def __post_init__(self) -> None:
        ensure(isinstance(self.cohorts_enabled, bool), "cohorts_enabled must be boolean", error=ValidationError)
        ensure(
            isinstance(self.share_with_advertisers, bool),
            "share_with_advertisers must be boolean",
            error=ValidationError,
        )
        ensure(
            isinstance(self.data_retention_days, int)
            and not isinstance(self.data_retention_days, bool)
            and self.data_retention_days > 0,
            "data_retention_days must be a positive integer",
            error=ValidationError,
        )
        topics = tuple(dict.fromkeys(self.disabled_topics))
        ensure(
            all(isinstance(t, int) and not isinstance(t, bool) for t in topics),
            "disabled_topics must contain topic ids",
            error=ValidationError,
        )
        object.__setattr__(self, "disabled_topics", topics)

    @property
    def sharing_enabled(self) -> bool:
        return self.cohorts_enabled and self.share_with_advertisers

    def with_topic(self, topic_id: int, enabled: bool) -> "UserPreferences":
        if enabled:
            topics = tuple(t for t in self.disabled_topics if t != topic_id)
        else:
            topics = self.disabled_topics + (topic_id,)
        return replace(self, disabled_topics=topics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cohorts_enabled": self.cohorts_enabled,
            "disabled_topics": list(self.disabled_topics),
            "data_retention_days": self.data_retention_days,
            "share_with_advertisers": self.share_with_advertisers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPreferences":
        return cls(
            cohorts_enabled=data.get("cohorts_enabled", True),
            disabled_topics=tuple(data.get("disabled_topics", ())),
            data_retention_days=data.get("data_retention_days", 21),
            share_with_advertisers=data.get("share_with_advertisers", True),
        )


class PreferenceStore:
    """Per-user preferences with defaults for users that never saved any."""

    def __init__(self, secure_store: Optional[EncryptedJSONStore] = None):
        self.secure_store = secure_store or EncryptedJSONStore()
        self._lock = threading.Lock()

    def get(self, user_id: str) -> UserPreferences:
        payload = self.secure_store.get_json(f"{KEY_PREFIX}{user_id}")
        return UserPreferences() if payload is None else UserPreferences.from_dict(payload)

    def save(self, user_id: str, preferences: UserPreferences) -> None:
        with self._lock:
            self.secure_store.put_json(f"{KEY_PREFIX}{user_id}", preferences.to_dict())

    def update(self, user_id: str, **changes: Any) -> UserPreferences:
        unknown = set(changes) - set(UserPreferences.__dataclass_fields__)
        if unknown:
            raise ValidationError(f"unknown preference fields: {sorted(unknown)}")
        with self._lock:
            updated = replace(self.get(user_id), **changes)
            self.secure_store.put_json(f"{KEY_PREFIX}{user_id}", updated.to_dict())
        return updated

    def delete(self, user_id: str) -> None:
        self.secure_store.delete(f"{KEY_PREFIX}{user_id}")
