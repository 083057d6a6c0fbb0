"""
Serialization helpers for records persisted through the key/value seam.

Provides JSON helpers with datetime handling, optional masking and basic
versioned payloads to ease backwards compatibility.
"""
# 说明：序列化辅助工具，统一 JSON 编解码行为并内置简单的版本封装。
# 职责：
# - mask_sensitive_data：对字典中的敏感字段进行掩码处理
# - serialize_to_json / deserialize_from_json：带 datetime 处理、可选掩码与版本包装的 JSON 编解码
# - to_utc_iso / parse_utc：datetime 与 ISO-8601 字符串互转（统一为 UTC）
# - VersionedPayload：封装 version + payload 结构

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Sequence

SensitiveFields = Sequence[str]


def mask_sensitive_data(payload: Dict[str, Any], sensitive_fields: SensitiveFields, mask: str = "***") -> Dict[str, Any]:
    masked = dict(payload)
    for field in sensitive_fields:
        if field in masked:
            masked[field] = mask
    return masked


def to_utc_iso(value: datetime) -> str:
    # naive datetime 视为 UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_utc(text: str) -> datetime:
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _prepare(obj: Any) -> Any:
    # 将 dataclass / to_dict 对象 / datetime / Enum 转换为可 JSON 序列化的基础结构
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, datetime):
        return to_utc_iso(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return obj


def serialize_to_json(
    obj: Any,
    *,
    sensitive_fields: Optional[SensitiveFields] = None,
    version: Optional[str] = None,
) -> str:
    payload = _prepare(obj)
    if isinstance(payload, dict) and sensitive_fields:
        payload = mask_sensitive_data(payload, sensitive_fields)
    if version is not None:
        payload = {"version": version, "payload": payload}
    return json.dumps(payload, default=_prepare, ensure_ascii=False, sort_keys=True)


def deserialize_from_json(text: str) -> Any:
    return json.loads(text)


@dataclass
class VersionedPayload:
    version: str
    payload: Any

    def to_json(self) -> str:
        return serialize_to_json(self.payload, version=self.version)

    @classmethod
    def from_json(cls, text: str) -> "VersionedPayload":
        data = json.loads(text)
        if not isinstance(data, dict) or "version" not in data or "payload" not in data:
            raise ValueError("serialized payload missing version or payload fields")
        return cls(version=data["version"], payload=data["payload"])
