"""Tests for the PHI encryption service."""

import pytest
from cryptography.fernet import Fernet, InvalidToken

from phc_screening.services.encryption import EncryptionService


def test_encrypt_decrypt_roundtrip():
    svc = EncryptionService()
    original = "Elevated fasting glucose; start metformin 500mg"
    encrypted = svc.encrypt(original)

    assert encrypted != original  # not stored in plaintext
    assert svc.decrypt(encrypted) == original


def test_empty_and_none_passthrough():
    svc = EncryptionService()
    assert svc.encrypt("") == ""
    assert svc.decrypt("") == ""
    assert svc.encrypt(None) is None
    assert svc.decrypt(None) is None


def test_configured_key_is_used():
    key = Fernet.generate_key()
    token = EncryptionService(key.decode()).encrypt("note")

    assert Fernet(key).decrypt(token.encode()).decode() == "note"


def test_wrong_key_raises():
    token = EncryptionService(Fernet.generate_key()).encrypt("note")
    with pytest.raises(InvalidToken):
        EncryptionService(Fernet.generate_key()).decrypt(token)
