from app.models.channel_binding import ChannelBinding, channel_documents
from app.models.conversation_event import ConversationEvent
from app.models.knowledge import KnowledgeChunk, KnowledgeDocument
from app.models.session import Session

__all__ = [
    "ChannelBinding",
    "ConversationEvent",
    "KnowledgeChunk",
    "KnowledgeDocument",
    "Session",
    "channel_documents",
]
