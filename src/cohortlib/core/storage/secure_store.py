"""
JSON documents encrypted before they reach the key/value store.

Responsibilities:
    * serialise records with the shared JSON helpers
    * encrypt on write and decrypt on read so that only ciphertext is stored
    * wrap every document in a versioned envelope
    * surface malformed payloads and unknown formats as StorageError
"""
# 说明：加密 JSON 存储，组合 KeyValueStore 与 EncryptionProvider。
# 职责：
# - put_json / get_json / delete：写入前加密，读取后解密并反序列化
# - 未提供密钥时自动生成一个进程内密钥
# 约定：
# - 明文统一为 VersionedPayload 封装，版本不是 STORE_FORMAT_VERSION 时拒绝读取

from __future__ import annotations

from typing import Any, Optional

from ..errors import StorageError
from ..utils.serialization import VersionedPayload
from .encryption import EncryptionProvider, FernetEncryptionProvider
from .kv import InMemoryKeyValueStore, KeyValueStore

STORE_FORMAT_VERSION = "1"


class EncryptedJSONStore:
    """Encrypted document store on top of a KeyValueStore."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        *,
        provider: Optional[EncryptionProvider] = None,
        key: Optional[bytes] = None,
    ):
        self.store: KeyValueStore = store if store is not None else InMemoryKeyValueStore()
        self.provider: EncryptionProvider = provider or FernetEncryptionProvider()
        self._key = key or self.provider.generate_key()

    def put_json(self, key: str, value: Any) -> None:
        plaintext = VersionedPayload(STORE_FORMAT_VERSION, value).to_json().encode("utf-8")
        self.store.put(key, self.provider.encrypt(plaintext, self._key))

    def get_json(self, key: str, default: Any = None) -> Any:
        ciphertext = self.store.get(key)
        if ciphertext is None:
            return default
        plaintext = self.provider.decrypt(ciphertext, self._key)
        try:
            envelope = VersionedPayload.from_json(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise StorageError(f"stored payload under '{key}' is not valid JSON") from exc
        if envelope.version != STORE_FORMAT_VERSION:
            raise StorageError(f"stored payload under '{key}' has unsupported format {envelope.version!r}")
        return envelope.payload

    def delete(self, key: str) -> None:
        self.store.delete(key)
