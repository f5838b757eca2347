"""Knowledge documents and their indexed chunks (text + vector)."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.channel_binding import channel_documents
from app.models.column_types import JSONType
from app.models.mixins import TimestampMixin


class KnowledgeDocument(Base, TimestampMixin):
    """A source document split into chunks."""

    __tablename__ = "knowledge_documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)

    chunks = relationship(
        "KnowledgeChunk",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="KnowledgeChunk.position",
    )
    bindings = relationship(
        "ChannelBinding",
        secondary=channel_documents,
        back_populates="documents",
    )


class KnowledgeChunk(Base):
    """One chunk. position is its index within the document; id follows insertion order."""

    __tablename__ = "knowledge_chunks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("knowledge_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    embedding = Column(JSONType, nullable=False)

    document = relationship("KnowledgeDocument", back_populates="chunks")
