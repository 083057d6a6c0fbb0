"""Storage seams: key/value store, encryption provider, encrypted JSON store."""
from .kv import KeyValueStore, InMemoryKeyValueStore
from .encryption import EncryptionProvider, FernetEncryptionProvider
from .secure_store import EncryptedJSONStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "EncryptionProvider",
    "FernetEncryptionProvider",
    "EncryptedJSONStore",
]
