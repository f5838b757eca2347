"""Service for channel bindings: per-endpoint persona, knowledge scope and delivery credentials."""

from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.core.credentials import (
    channel_credential_types,
    decrypt_credential_fields,
    encrypt_credential_fields,
    validate_credential_fields,
)
from app.core.errors import ConfigurationMissingError
from app.models.channel_binding import ChannelBinding
from app.models.knowledge import KnowledgeDocument
from app.schemas.credential import ChannelBindingCreate


class ChannelBindingService:
    """Manages channel bindings and resolves the credentials used for delivery."""

    def __init__(self, db: Session, settings: Optional[Settings] = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    def get_binding(self, channel: str, endpoint: str) -> Optional[ChannelBinding]:
        """Fetch the binding for a channel endpoint."""
        return (
            self.db.query(ChannelBinding)
            .filter(ChannelBinding.channel == channel, ChannelBinding.endpoint == endpoint)
            .first()
        )

    def create_binding(self, data: ChannelBindingCreate) -> ChannelBinding:
        """Create a binding; validate and encrypt credentials when given."""
        encrypted = None
        if data.credentials:
            cred_type = channel_credential_types.get(data.channel)
            if cred_type is None:
                raise ValueError(f"Unknown channel: {data.channel}")
            validate_credential_fields(cred_type.value, data.credentials)
            encrypted = encrypt_credential_fields(data.credentials)

        binding = ChannelBinding(
            channel=data.channel,
            endpoint=data.endpoint,
            intent=data.intent,
            system_prompt=data.system_prompt,
            encrypted_credentials=encrypted,
        )
        self.db.add(binding)
        self.db.commit()
        self.db.refresh(binding)
        return binding

    def attach_document(self, binding: ChannelBinding, document_id: UUID) -> bool:
        """Add a knowledge document to the binding's scope. Returns False if not found."""
        document = (
            self.db.query(KnowledgeDocument)
            .filter(KnowledgeDocument.id == document_id)
            .first()
        )
        if document is None:
            return False
        if document not in binding.documents:
            binding.documents.append(document)
            self.db.commit()
        return True

    def get_system_prompt(self, channel: str, endpoint: str) -> Optional[str]:
        binding = self.get_binding(channel, endpoint)
        return binding.system_prompt if binding else None

    def resolve_credentials(self, channel: str, endpoint: str) -> Dict[str, Any]:
        """
        Credentials needed to deliver on a channel endpoint.

        Telegram uses the bot token from settings. WhatsApp uses the binding's
        encrypted credentials. Raises ConfigurationMissingError when absent.
        """
        if channel == "telegram":
            if not self.settings.telegram_bot_token:
                raise ConfigurationMissingError("TELEGRAM_BOT_TOKEN is not set")
            return {"bot_token": self.settings.telegram_bot_token}

        binding = self.get_binding(channel, endpoint)
        if binding is None or not binding.encrypted_credentials:
            raise ConfigurationMissingError(
                f"No delivery credentials for {channel}:{endpoint}"
            )
        try:
            return decrypt_credential_fields(binding.encrypted_credentials)
        except ValueError as e:
            raise ConfigurationMissingError(str(e)) from e
