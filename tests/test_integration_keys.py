# tests/test_integration_keys.py
"""
Tests for integration_keys.py - external integration key registry and rights
"""
from dataclasses import dataclass
from typing import Optional

import pytest

from marvin.errors import RecordInvalid
from marvin.integration_keys import ExternalIntegrationKey


@dataclass
class Account:
    id: Optional[int] = None


@dataclass
class User:
    is_admin: bool = False


@pytest.fixture(autouse=True)
def key_types():
    """Start each test with an empty key type registry"""
    ExternalIntegrationKey.reset_key_types()
    yield
    ExternalIntegrationKey.reset_key_types()


class TestKeyTypes:
    def test_register(self):
        ExternalIntegrationKey.key_type("external_key0", label="External Key 0")
        ExternalIntegrationKey.key_type("external_key1", label=lambda: "Computed Label")

        assert ExternalIntegrationKey.key_types() == ["external_key0", "external_key1"]
        assert ExternalIntegrationKey.label_for("external_key0") == "External Key 0"
        assert ExternalIntegrationKey.label_for("external_key1") == "Computed Label"

    def test_reregister_keeps_order(self):
        ExternalIntegrationKey.key_type("a")
        ExternalIntegrationKey.key_type("b")
        ExternalIntegrationKey.key_type("a", label="Again")

        assert ExternalIntegrationKey.key_types() == ["a", "b"]
        assert ExternalIntegrationKey.label_for("a") == "Again"

    def test_indexed_keys_for(self):
        ExternalIntegrationKey.key_type("a")
        ExternalIntegrationKey.key_type("b")
        account = Account(id=1)
        saved = ExternalIntegrationKey(account, "a", "value-a", id=10)

        keys = ExternalIntegrationKey.indexed_keys_for(account, [saved])

        assert keys["a"] is saved
        assert keys["b"].new_record
        assert keys["b"].context is account


class TestRights:
    def test_static_rights(self):
        ExternalIntegrationKey.key_type("k", rights={"read": True, "write": False})
        key = ExternalIntegrationKey(Account(1), "k", "v")

        assert key.grants_right(User(), "read") is True
        assert key.grants_right(User(), "write") is False

    def test_two_argument_callable(self):
        ExternalIntegrationKey.key_type("k", rights={"write": lambda key, user: user.is_admin})
        key = ExternalIntegrationKey(Account(1), "k", "v")

        assert key.grants_right(User(is_admin=True), "write") is True
        assert key.grants_right(User(is_admin=False), "write") is False

    def test_zero_argument_callable(self):
        ExternalIntegrationKey.key_type("k", rights={"read": lambda: True})
        key = ExternalIntegrationKey(Account(1), "k", "v")

        assert key.grants_right_for(User(), "read") is True

    def test_rights_callable_for_every_right(self):
        ExternalIntegrationKey.key_type("k", rights=lambda key, user: user.is_admin)
        key = ExternalIntegrationKey(Account(1), "k", "v")

        assert key.grants_right(User(is_admin=True), "read") is True

    def test_unknown_right(self):
        ExternalIntegrationKey.key_type("k", rights={"manage": True})
        key = ExternalIntegrationKey(Account(1), "k", "v")

        assert key.grants_right(User(), "manage") is False

    def test_unregistered_type_grants_nothing(self):
        key = ExternalIntegrationKey(Account(1), "unknown", "v")

        assert key.grants_right(User(), "read") is False


class TestValidation:
    def test_valid_key(self):
        ExternalIntegrationKey.key_type("k")
        key = ExternalIntegrationKey(Account(1), "k", "secret")

        key.validate()

        assert key.context_type == "Account"
        assert key.context_id == 1

    def test_new_key_on_new_account(self):
        ExternalIntegrationKey.key_type("k")

        ExternalIntegrationKey(Account(), "k", "secret").validate()

    def test_saved_key_needs_context_id(self):
        ExternalIntegrationKey.key_type("k")
        key = ExternalIntegrationKey(Account(), "k", "secret", id=5)

        with pytest.raises(RecordInvalid) as excinfo:
            key.validate()

        assert excinfo.value.errors == {"context_id": ["can't be blank"]}

    def test_unknown_type_and_blank_value(self):
        key = ExternalIntegrationKey(Account(1), "bogus", "")

        with pytest.raises(RecordInvalid) as excinfo:
            key.validate()

        assert excinfo.value.errors == {
            "key_type": ["is not included in the list"],
            "key_value": ["can't be blank"],
        }

    def test_one_key_per_type_per_context(self):
        ExternalIntegrationKey.key_type("k")
        account = Account(1)
        existing = ExternalIntegrationKey(account, "k", "first", id=1)
        duplicate = ExternalIntegrationKey(account, "k", "second")

        with pytest.raises(RecordInvalid) as excinfo:
            duplicate.validate(existing=[existing])

        assert excinfo.value.errors == {"key_type": ["has already been taken"]}

    def test_same_type_on_other_account(self):
        ExternalIntegrationKey.key_type("k")
        existing = ExternalIntegrationKey(Account(1), "k", "first", id=1)

        ExternalIntegrationKey(Account(2), "k", "second").validate(existing=[existing])
