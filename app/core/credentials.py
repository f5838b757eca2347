"""Credential validation and encryption for channel delivery credentials."""

from __future__ import annotations

import json
from typing import Any, Dict, Type

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel

from app.constants.credentials import CredentialType
from app.schemas.credential import TelegramBotModel, WhatsAppApiModel
from app.config import get_settings


def _get_fernet() -> Fernet:
    """Get a Fernet instance with the credential master key."""
    settings = get_settings()
    key = settings.credential_master_key or settings.fernet_key
    if not key:
        raise ValueError(
            "CREDENTIAL_MASTER_KEY or FERNET_KEY must be set for credential encryption"
        )
    return Fernet(key.encode() if isinstance(key, str) else key)


def _encrypt_value(value: bytes) -> bytes:
    """Encrypt a value using the master key."""
    return _get_fernet().encrypt(value)


def _decrypt_value(value: bytes) -> bytes:
    """Decrypt a value using the master key."""
    return _get_fernet().decrypt(value)


credential_models: Dict[CredentialType, Type[BaseModel]] = {
    CredentialType.WHATSAPP_API: WhatsAppApiModel,
    CredentialType.TELEGRAM_BOT: TelegramBotModel,
}

# Which credential type each channel delivers with
channel_credential_types: Dict[str, CredentialType] = {
    "whatsapp": CredentialType.WHATSAPP_API,
    "telegram": CredentialType.TELEGRAM_BOT,
}


def validate_credential_fields(type_name: str, fields: Dict[str, Any]) -> None:
    """Validate credential fields against their model."""
    try:
        cred_type = CredentialType(type_name)
    except ValueError:
        raise ValueError(f"Unknown credential type: {type_name}") from None

    model = credential_models[cred_type]
    try:
        model(**fields)
    except Exception as e:
        raise ValueError(f"Invalid credential fields: {str(e)}") from e


def encrypt_credential_fields(fields: Dict[str, Any]) -> bytes:
    """Encrypt credential fields."""
    plaintext = json.dumps(fields).encode()
    return _encrypt_value(plaintext)


def decrypt_credential_fields(encrypted_data: bytes) -> Dict[str, Any]:
    """Decrypt credential fields. Raises ValueError when the data cannot be decrypted."""
    try:
        plaintext = _decrypt_value(encrypted_data)
    except InvalidToken as e:
        raise ValueError("Stored credentials cannot be decrypted") from e
    return json.loads(plaintext)
