"""Tests for channel credential validation and encryption."""

import pytest

from app.constants.credentials import CredentialType
from app.core import credentials
from app.core.credentials import (
    channel_credential_types,
    decrypt_credential_fields,
    encrypt_credential_fields,
    validate_credential_fields,
)


def test_every_channel_has_a_credential_model():
    for cred_type in channel_credential_types.values():
        assert cred_type in credentials.credential_models


def test_validate_credential_fields():
    validate_credential_fields(
        CredentialType.WHATSAPP_API, {"auth_token": "tok", "origin": "919000000001"}
    )
    with pytest.raises(ValueError, match="Invalid credential fields"):
        validate_credential_fields(CredentialType.TELEGRAM_BOT, {})
    with pytest.raises(ValueError, match="Unknown credential type"):
        validate_credential_fields("bearer_auth", {"token": "x"})


def test_encrypted_fields_are_opaque():
    encrypted = encrypt_credential_fields({"bot_token": "123:abc"})
    assert b"123:abc" not in encrypted
    assert decrypt_credential_fields(encrypted) == {"bot_token": "123:abc"}


def test_tampered_fields_cannot_be_decrypted():
    with pytest.raises(ValueError, match="cannot be decrypted"):
        decrypt_credential_fields(b"not-a-fernet-token")


def test_removed_registry_helpers_are_gone():
    assert not hasattr(credentials, "credential_registry")
    assert not hasattr(credentials, "get_credential_type")
