"""
Encrypted persistence of per-user cohort state.
"""
# 说明：人群状态持久化，底层为 EncryptedJSONStore（KV 中只落密文）。
# 职责：
# - CohortState：访问表、分配集合与上次维护时间的快照
# - CohortStore：按用户读写 / 删除快照

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.storage.secure_store import EncryptedJSONStore
from ..core.utils.serialization import parse_utc, to_utc_iso
from .models import CohortAssignment

KEY_PREFIX = "cohort_state:"


@dataclass
class CohortState:
    visits: List[Dict[str, Any]] = field(default_factory=list)
    assignments: Tuple[CohortAssignment, ...] = ()
    last_maintenance: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visits": list(self.visits),
            "assignments": [a.to_dict() for a in self.assignments],
            "last_maintenance": None if self.last_maintenance is None else to_utc_iso(self.last_maintenance),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CohortState":
        last = data.get("last_maintenance")
        return cls(
            visits=list(data.get("visits", [])),
            assignments=tuple(CohortAssignment.from_dict(a) for a in data.get("assignments", [])),
            last_maintenance=None if last is None else parse_utc(last),
        )


class CohortStore:
    """Load and save CohortState snapshots through an encrypted store."""

    def __init__(self, secure_store: Optional[EncryptedJSONStore] = None):
        self.secure_store = secure_store or EncryptedJSONStore()

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{KEY_PREFIX}{user_id}"

    def load(self, user_id: str) -> Optional[CohortState]:
        payload = self.secure_store.get_json(self._key(user_id))
        return None if payload is None else CohortState.from_dict(payload)

    def save(self, user_id: str, state: CohortState) -> None:
        self.secure_store.put_json(self._key(user_id), state.to_dict())

    def delete(self, user_id: str) -> None:
        self.secure_store.delete(self._key(user_id))
