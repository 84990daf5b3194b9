"""
Backing key-value stores and the AES-GCM value wrapper.
"""

import base64
from unittest.mock import patch

import pytest

from conftest import FrozenClock, make_event
from smartproctor.core.config import RetentionSettings
from smartproctor.core.dao import RetentionStore
from smartproctor.core.db import health_check, init_db
from smartproctor.core.errors import StoreCorruptionError
from smartproctor.core.storage import (
    EncryptedStore,
    InMemoryStore,
    SQLiteStore,
    _decrypt_data,
    _derive_key,
    _encrypt_data,
    create_store
)


class TestInMemoryStore:

    def test_get_missing_key(self):
        assert InMemoryStore().get("nope") is None

    def test_set_get_delete(self):
        store = InMemoryStore()
        store.set("a", "1")
        store.set("b", "2")

        assert store.get("a") == "1"
        assert store.keys() == ["a", "b"]

        store.delete("a")
        assert store.get("a") is None

    def test_delete_missing_key_is_safe(self):
        InMemoryStore().delete("nope")


class TestSQLiteStore:

    def test_upsert_replaces_value(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "kv.db"))
        store.set("collection", "[]")
        store.set("collection", "[1]")

        assert store.get("collection") == "[1]"
        assert store.keys() == ["collection"]

    def test_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "kv.db"
        SQLiteStore(str(db_path))

        assert db_path.exists()
        assert health_check(str(db_path)) is True

    def test_health_check_without_table(self, tmp_path):
        db_path = str(tmp_path / "empty.db")
        assert health_check(db_path) is False

        init_db(db_path)
        assert health_check(db_path) is True


class TestEncryption:
    """AES-256-GCM helpers."""

    def test_encrypt_decrypt_round_trip(self):
        key = _derive_key("passphrase", b"0" * 16)
        sealed = _encrypt_data(b"payload", key)

        assert sealed != b"payload"
        assert _decrypt_data(sealed, key) == b"payload"

    def test_nonce_differs_per_call(self):
        key = _derive_key("passphrase", b"0" * 16)
        assert _encrypt_data(b"payload", key) != _encrypt_data(b"payload", key)

    def test_short_ciphertext_rejected(self):
        with pytest.raises(ValueError, match="too short"):
            _decrypt_data(b"short", _derive_key("p", b"1" * 16))

    def test_encrypted_store_hides_plaintext(self):
        inner = InMemoryStore()
        store = EncryptedStore(inner, "secret")
        store.set("k", '{"studentId": "S1"}')

        assert "S1" not in inner.get("k")
        assert store.get("k") == '{"studentId": "S1"}'

    def test_key_derived_once_per_store(self):
        """Repeated writes reuse one salt and key instead of deriving per value."""
        inner = InMemoryStore()
        with patch("smartproctor.core.storage._derive_key", wraps=_derive_key) as mock_derive:
            store = RetentionStore(EncryptedStore(inner, "pw"), RetentionSettings(), clock=FrozenClock())
            for i in range(20):
                store.save_event(make_event(f"evt-{i}"))

        assert mock_derive.call_count == 1
        assert len(store.get_events()) == 20

    def test_other_instance_values_readable_with_one_cached_key(self):
        inner = InMemoryStore()
        writer = EncryptedStore(inner, "pw")
        writer.set("a", "first")
        writer.set("b", "second")

        reader = EncryptedStore(inner, "pw")
        with patch("smartproctor.core.storage._derive_key", wraps=_derive_key) as mock_derive:
            assert reader.get("a") == "first"
            assert reader.get("b") == "second"
            reader.set("c", "third")
            assert reader.get("c") == "third"

        assert mock_derive.call_count == 1

    def test_tampered_value_is_corruption(self):
        inner = InMemoryStore()
        store = EncryptedStore(inner, "secret")
        store.set("k", "value")

        raw = bytearray(base64.b64decode(inner.get("k")))
        raw[-1] ^= 0x01
        inner.set("k", base64.b64encode(bytes(raw)).decode("ascii"))

        with pytest.raises(StoreCorruptionError) as exc_info:
            store.get("k")
        assert exc_info.value.collection == "k"

    def test_plaintext_value_is_corruption(self):
        inner = InMemoryStore({"k": "[not encrypted]"})

        with pytest.raises(StoreCorruptionError):
            EncryptedStore(inner, "secret").get("k")

    def test_passphrase_required(self):
        with pytest.raises(ValueError):
            EncryptedStore(InMemoryStore(), "")


class TestCreateStore:

    def test_memory_backend(self):
        assert isinstance(create_store("memory"), InMemoryStore)

    def test_sqlite_backend(self, tmp_path):
        store = create_store("sqlite", db_path=str(tmp_path / "kv.db"))
        assert isinstance(store, SQLiteStore)

    def test_encryption_wraps_backend(self):
        store = create_store("memory", encryption_key="secret")
        assert isinstance(store, EncryptedStore)
        assert isinstance(store.inner, InMemoryStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown store backend"):
            create_store("redis")
