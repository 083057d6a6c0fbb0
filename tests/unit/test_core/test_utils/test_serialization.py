"""
Unit tests for serialization utilities.
"""
# 说明：序列化与敏感字段掩码相关工具的单元测试。
# 覆盖：
# - mask_sensitive_data：对指定键进行掩码替换
# - serialize_to_json / deserialize_from_json：支持 dataclass、datetime、敏感字段掩码
# - to_utc_iso / parse_utc：naive 时间视为 UTC
# - VersionedPayload：带 version + payload 结构的序列化/反序列化

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from cohortlib.core.utils import (
    VersionedPayload,
    deserialize_from_json,
    mask_sensitive_data,
    parse_utc,
    serialize_to_json,
    to_utc_iso,
)


@dataclasses.dataclass
class Sample:
    a: int
    secret: str
    when: datetime


def test_mask_sensitive_data() -> None:
    payload = {"a": 1, "secret": "value"}
    masked = mask_sensitive_data(payload, ["secret"])
    assert masked["secret"] == "***"
    assert payload["secret"] == "value"


def test_serialize_dataclass_with_datetime() -> None:
    obj = Sample(a=5, secret="hidden", when=datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc))
    data = deserialize_from_json(serialize_to_json(obj, sensitive_fields=["secret"]))
    assert data["a"] == 5
    assert data["secret"] == "***"
    assert data["when"] == "2024-01-02T03:04:00+00:00"


def test_utc_helpers_normalise_offsets() -> None:
    plus_two = timezone(timedelta(hours=2))
    assert to_utc_iso(datetime(2024, 1, 1, 12, tzinfo=plus_two)) == "2024-01-01T10:00:00+00:00"
    assert parse_utc("2024-01-01T10:00:00") == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)


def test_versioned_payload_requires_fields() -> None:
    restored = VersionedPayload.from_json(VersionedPayload(version="1.0", payload={"foo": "bar"}).to_json())
    assert restored.version == "1.0"
    assert restored.payload["foo"] == "bar"
    with pytest.raises(ValueError):
        VersionedPayload.from_json('{"payload": 1}')
