"""
Encryption provider seam and its Fernet implementation.
"""
# 说明：加密提供方抽象。
# 职责：
# - EncryptionProvider：协议，约定 generate_key / encrypt / decrypt
# - FernetEncryptionProvider：基于 cryptography.fernet 的对称加密实现
# 约定：
# - 解密失败（密钥错误或密文被篡改）统一转换为 StorageError

from __future__ import annotations

from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from ..errors import StorageError


class EncryptionProvider(Protocol):
    def generate_key(self) -> bytes:
        ...

    def encrypt(self, plaintext: bytes, key: bytes) -> bytes:
        ...

    def decrypt(self, ciphertext: bytes, key: bytes) -> bytes:
        ...


class FernetEncryptionProvider:
    """Authenticated symmetric encryption via Fernet tokens."""

    def generate_key(self) -> bytes:
        return Fernet.generate_key()

    def encrypt(self, plaintext: bytes, key: bytes) -> bytes:
        return Fernet(key).encrypt(plaintext)

    def decrypt(self, ciphertext: bytes, key: bytes) -> bytes:
        try:
            return Fernet(key).decrypt(ciphertext)
        except InvalidToken as exc:
            raise StorageError("unable to decrypt stored payload") from exc
