"""Tests for SessionService."""

from unittest.mock import patch

from sqlalchemy.orm import Query, Session

from app.schemas.session import Stage
from app.services.session_service import SessionService


def test_get_or_create_is_lazy_and_stable(db: Session, conversation_key):
    svc = SessionService(db)
    assert svc.get_session_by_key(str(conversation_key)) is None

    session, created = svc.get_or_create_by_key(conversation_key)
    assert created is True
    assert session.stage == Stage.INIT.value
    assert session.channel == "whatsapp"
    assert session.endpoint == conversation_key.endpoint
    assert session.user_ref == conversation_key.user

    again, created = svc.get_or_create_by_key(conversation_key)
    assert created is False
    assert again.id == session.id


def test_apply_state_round_trip(db: Session, conversation_key):
    svc = SessionService(db)
    session, _ = svc.get_or_create_by_key(conversation_key)
    state = svc.to_state(session).model_copy(
        update={
            "stage": Stage.COLLECTING,
            "subject": "vr",
            "slots": {"group_size": 4},
            "pending_fields": ["date", "time"],
            "last_user_text": "4 log",
        }
    )
    svc.apply_state(session, state)

    loaded = svc.to_state(svc.get_session_by_key(str(conversation_key)))
    assert loaded == state


def test_pending_reply(db: Session, conversation_key):
    svc = SessionService(db)
    session, _ = svc.get_or_create_by_key(conversation_key)
    svc.set_pending_reply(session, "hello there", "ev-1")
    db.commit()
    assert svc.get_session_by_key(str(conversation_key)).pending_reply == "hello there"

    svc.set_pending_reply(session, None, None)
    db.commit()
    assert svc.get_session_by_key(str(conversation_key)).pending_reply_event_id is None


def test_reset_session(db: Session, conversation_key):
    svc = SessionService(db)
    session, _ = svc.get_or_create_by_key(conversation_key)
    state = svc.to_state(session).model_copy(
        update={
            "stage": Stage.STOPPED,
            "subject": "vr",
            "slots": {"group_size": 4},
            "last_user_text": "bye",
        }
    )
    svc.apply_state(session, state)
    svc.set_pending_reply(session, "unsent", "ev-2")

    reset = svc.reset_session(str(conversation_key))
    assert reset.stage == Stage.INIT.value
    assert reset.subject is None
    assert reset.slots == {}
    assert reset.pending_fields == []
    assert reset.pending_reply is None
    assert reset.last_user_text == "bye"


def test_reset_unknown_session(db: Session):
    assert SessionService(db).reset_session("whatsapp:1:2") is None


def test_for_update_locks_the_session_row(db: Session, conversation_key):
    svc = SessionService(db)
    with patch.object(
        Query, "with_for_update", autospec=True, side_effect=Query.with_for_update
    ) as locked:
        session, created = svc.get_or_create_by_key(conversation_key, for_update=True)
        assert created is True
        assert locked.called

        locked.reset_mock()
        again, created = svc.get_or_create_by_key(conversation_key, for_update=True)
        assert created is False
        assert again.id == session.id
        assert locked.called

        locked.reset_mock()
        svc.get_session_by_key(str(conversation_key))
        assert not locked.called
