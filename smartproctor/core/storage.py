"""
Backing key-value stores for the persisted collections.

The retention store only ever reads and writes whole collections under fixed
keys, so any store that maps a string key to a string value will do. The
encrypted wrapper seals each value with AES-256-GCM.
"""

import base64
import binascii
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import (
    DB_PATH,
    STORE_BACKEND,
    STORE_ENCRYPTION_ENABLED,
    STORE_ENCRYPTION_KEY
)
from .db import get_db, init_db
from .errors import StoreCorruptionError

SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
KDF_ITERATIONS = 100000


class KeyValueStore(ABC):
    """String-to-string store holding serialized collections."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        pass


class InMemoryStore(KeyValueStore):
    """Dict-backed store; contents live as long as the process."""

    def __init__(self, initial: Dict[str, str] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())


class SQLiteStore(KeyValueStore):
    """Store backed by the kv_store table of a SQLite file."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or DB_PATH
        init_db(self.db_path)

    def get(self, key: str) -> Optional[str]:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                (key, value)
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> List[str]:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT key FROM kv_store ORDER BY key")
            return [row[0] for row in cursor.fetchall()]


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    """Derive encryption key from passphrase using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(passphrase.encode())


def _encrypt_data(data: bytes, key: bytes) -> bytes:
    """Encrypt data using AES-256-GCM; returns nonce + tag + ciphertext."""
    nonce = os.urandom(NONCE_SIZE)
    cipher = Cipher(algorithms.AES(key), modes.GCM(nonce))
    encryptor = cipher.encryptor()
    ciphertext = encryptor.update(data) + encryptor.finalize()
    return nonce + encryptor.tag + ciphertext


def _decrypt_data(encrypted_data: bytes, key: bytes) -> bytes:
    """Decrypt nonce + tag + ciphertext produced by _encrypt_data."""
    if len(encrypted_data) < NONCE_SIZE + TAG_SIZE:
        raise ValueError("Encrypted data too short")

    nonce = encrypted_data[:NONCE_SIZE]
    tag = encrypted_data[NONCE_SIZE:NONCE_SIZE + TAG_SIZE]
    ciphertext = encrypted_data[NONCE_SIZE + TAG_SIZE:]

    cipher = Cipher(algorithms.AES(key), modes.GCM(nonce, tag))
    decryptor = cipher.decryptor()
    return decryptor.update(ciphertext) + decryptor.finalize()


class EncryptedStore(KeyValueStore):
    """Wraps another store, sealing every value with a passphrase-derived AES-GCM key.

    Stored form is base64(salt + nonce + tag + ciphertext). One salt and key are
    derived per store and reused for every write; values sealed under another
    salt are readable through a single cached read key. A value that does not
    decrypt raises StoreCorruptionError instead of reading as empty.
    """

    def __init__(self, inner: KeyValueStore, passphrase: str):
        if not passphrase:
            raise ValueError("Encrypted store requires a passphrase")
        self.inner = inner
        self._passphrase = passphrase
        self._salt = os.urandom(SALT_SIZE)
        self._key = _derive_key(passphrase, self._salt)
        self._read_cache: Optional[Tuple[bytes, bytes]] = None

    def _key_for(self, salt: bytes) -> bytes:
        if salt == self._salt:
            return self._key
        cached = self._read_cache
        if cached is None or cached[0] != salt:
            # Salt and key are swapped together
            cached = (salt, _derive_key(self._passphrase, salt))
            self._read_cache = cached
        return cached[1]

    def get(self, key: str) -> Optional[str]:
        sealed = self.inner.get(key)
        if sealed is None:
            return None

        try:
            raw = base64.b64decode(sealed.encode("ascii"), validate=True)
            salt, body = raw[:SALT_SIZE], raw[SALT_SIZE:]
            if len(salt) < SALT_SIZE:
                raise ValueError("Encrypted data too short")
            return _decrypt_data(body, self._key_for(salt)).decode("utf-8")
        except (InvalidTag, ValueError, binascii.Error, UnicodeError) as e:
            raise StoreCorruptionError(key, f"decryption failed ({e.__class__.__name__})") from e

    def set(self, key: str, value: str) -> None:
        sealed = self._salt + _encrypt_data(value.encode("utf-8"), self._key)
        self.inner.set(key, base64.b64encode(sealed).decode("ascii"))

    def delete(self, key: str) -> None:
        self.inner.delete(key)

    def keys(self) -> List[str]:
        return self.inner.keys()


def create_store(backend: str = None, db_path: str = None,
                 encryption_key: str = None) -> KeyValueStore:
    """Build the configured backing store."""
    backend = backend or STORE_BACKEND

    if backend == "sqlite":
        store: KeyValueStore = SQLiteStore(db_path or DB_PATH)
    elif backend == "memory":
        store = InMemoryStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}")

    passphrase = encryption_key or (STORE_ENCRYPTION_KEY if STORE_ENCRYPTION_ENABLED else None)
    if passphrase:
        store = EncryptedStore(store, passphrase)

    return store
