"""Fixtures for inbound events."""

import pytest

from app.schemas.events import (
    Channel,
    ConversationKey,
    EventKind,
    EventOrigin,
    InboundEvent,
)
from tests.fixtures.channel_fixtures import BUSINESS_NUMBER


@pytest.fixture
def conversation_key(faker):
    return ConversationKey(
        channel=Channel.WHATSAPP,
        endpoint=BUSINESS_NUMBER,
        user=faker.numerify("9198########"),
    )


@pytest.fixture
def make_event(faker, conversation_key):
    """Factory for inbound events on one conversation."""

    def factory(
        text=None,
        event_id=None,
        kind=EventKind.TEXT,
        origin=EventOrigin.USER,
        media_ref=None,
        sender="Rahul",
        key=None,
    ):
        return InboundEvent(
            id=event_id or faker.uuid4(),
            conversation_key=key or conversation_key,
            kind=kind,
            origin=origin,
            raw_text=text,
            media_ref=media_ref,
            sender_display_name=sender,
        )

    return factory
