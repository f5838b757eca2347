from app.services.channel_binding_service import ChannelBindingService
from app.services.conversation_event_service import ConversationEventService
from app.services.knowledge_service import KnowledgeService
from app.services.session_service import SessionService

__all__ = [
    "ChannelBindingService",
    "ConversationEventService",
    "KnowledgeService",
    "SessionService",
]
