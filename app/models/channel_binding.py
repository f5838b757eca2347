"""Channel binding model: per-endpoint persona, delivery credentials and knowledge scope."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    ForeignKey,
    LargeBinary,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin

channel_documents = Table(
    "channel_documents",
    Base.metadata,
    Column(
        "binding_id",
        Uuid(as_uuid=True),
        ForeignKey("channel_bindings.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "document_id",
        Uuid(as_uuid=True),
        ForeignKey("knowledge_documents.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class ChannelBinding(Base, TimestampMixin):
    """One business endpoint (e.g. a WhatsApp number). Credentials are Fernet-encrypted."""

    __tablename__ = "channel_bindings"

    __table_args__ = (
        UniqueConstraint("channel", "endpoint", name="uq_channel_bindings_endpoint"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    channel = Column(String(32), nullable=False)
    endpoint = Column(String(255), nullable=False)
    intent = Column(Text, nullable=True)
    system_prompt = Column(Text, nullable=True)
    encrypted_credentials = Column(LargeBinary, nullable=True)

    documents = relationship(
        "KnowledgeDocument",
        secondary=channel_documents,
        back_populates="bindings",
    )
