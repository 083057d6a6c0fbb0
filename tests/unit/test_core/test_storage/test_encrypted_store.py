"""
Unit tests for the storage seams.
"""
# 说明：键值存储与加密 JSON 存储的单元测试。
# 覆盖：
# - InMemoryKeyValueStore：只接受 bytes；keys 按前缀过滤
# - EncryptedJSONStore：写入 KV 的只有密文；往返一致；默认值
# - 密钥不匹配或版本封装未知时抛出 StorageError

import pytest

from cohortlib.core.errors import StorageError
from cohortlib.core.storage import EncryptedJSONStore, FernetEncryptionProvider, InMemoryKeyValueStore
from cohortlib.core.utils import VersionedPayload


def test_kv_store_accepts_only_bytes() -> None:
    store = InMemoryKeyValueStore()
    store.put("a:1", b"x")
    store.put("b:1", b"y")
    assert store.keys("a:") == ("a:1",)
    with pytest.raises(TypeError):
        store.put("a:2", "text")
    store.delete("a:1")
    assert store.get("a:1") is None
    assert len(store) == 1


def test_only_ciphertext_reaches_backing_store() -> None:
    kv = InMemoryKeyValueStore()
    secure = EncryptedJSONStore(kv)
    secure.put_json("prefs", {"domain": "netflix.com"})
    assert b"netflix" not in kv.get("prefs")
    assert secure.get_json("prefs") == {"domain": "netflix.com"}
    assert secure.get_json("missing", default=[]) == []


def test_wrong_key_raises_storage_error() -> None:
    kv = InMemoryKeyValueStore()
    provider = FernetEncryptionProvider()
    EncryptedJSONStore(kv, provider=provider).put_json("k", [1, 2])
    other = EncryptedJSONStore(kv, provider=provider, key=provider.generate_key())
    with pytest.raises(StorageError):
        other.get_json("k")


def test_unknown_format_version_rejected() -> None:
    kv = InMemoryKeyValueStore()
    provider = FernetEncryptionProvider()
    key = provider.generate_key()
    secure = EncryptedJSONStore(kv, provider=provider, key=key)
    legacy = VersionedPayload(version="0", payload={"a": 1}).to_json().encode("utf-8")
    kv.put("old", provider.encrypt(legacy, key))
    with pytest.raises(StorageError):
        secure.get_json("old")
    kv.put("raw", provider.encrypt(b"[1, 2]", key))
    with pytest.raises(StorageError):
        secure.get_json("raw")
