"""Tests for the session state machine."""

import pytest

from app.constants.domain import CLOSE_MESSAGE, DEFAULT_DOMAIN
from app.core.state_machine import (
    GenerateReply,
    ReplyMode,
    SendCanned,
    SessionStateMachine,
    Suppress,
)
from app.schemas.session import SessionState, Stage


@pytest.fixture
def machine():
    return SessionStateMachine(DEFAULT_DOMAIN)


@pytest.fixture
def fresh():
    return SessionState(conversation_key="whatsapp:919000000001:919811111111")


def run(machine, session, *utterances):
    actions = []
    for text in utterances:
        session, action = machine.transition(session, text)
        actions.append(action)
    return session, actions


def test_vr_booking_scenario(machine, fresh):
    session, action = machine.transition(fresh, "hi, VR chahiye")
    assert session.stage == Stage.COLLECTING
    assert session.subject == "vr"
    assert session.pending_fields == ["group_size", "date", "time"]
    assert action == GenerateReply(
        mode=ReplyMode.COLLECT,
        pending_fields=("group_size", "date", "time"),
        captured={},
    )

    session, action = machine.transition(session, "4 log, 5pm")
    assert session.slots == {"group_size": 4, "time": "5pm"}
    assert session.pending_fields == ["date"]
    assert session.stage == Stage.COLLECTING
    assert action.pending_fields == ("date",)

    session, action = machine.transition(session, "today")
    assert session.slots["date"] == "today"
    assert session.pending_fields == []
    assert session.stage == Stage.CONFIRMING
    assert action.mode == ReplyMode.CONFIRM


def test_stop_scenario(machine, fresh):
    session, _ = machine.transition(fresh, "VR chahiye")
    session, action = machine.transition(session, "nahi thanks")
    assert session.stage == Stage.STOPPED
    assert action == SendCanned(text=CLOSE_MESSAGE)

    before = session
    session, action = machine.transition(session, "VR chahiye 4 log")
    assert isinstance(action, Suppress)
    assert session.slots == before.slots
    assert session.pending_fields == before.pending_fields
    assert session.stage == Stage.STOPPED


def test_reject_while_stopped_stays_silent(machine, fresh):
    session, _ = machine.transition(fresh, "bye")
    session, action = machine.transition(session, "bye")
    assert isinstance(action, Suppress)


def test_reject_wins_over_reset(machine, fresh):
    session, _ = machine.transition(fresh, "VR chahiye")
    session, action = machine.transition(session, "no, restart")
    assert session.stage == Stage.STOPPED
    assert isinstance(action, SendCanned)


def test_reset_from_stopped_reprocesses_utterance(machine, fresh):
    session, _ = run(machine, fresh, "VR chahiye", "4 log", "stop")
    assert session.stage == Stage.STOPPED

    session, action = machine.transition(session, "restart, party for 10 people")
    assert session.subject == "party"
    assert session.slots == {"group_size": 10}
    assert session.pending_fields == ["date", "time", "contact_name"]
    assert action.mode == ReplyMode.COLLECT


def test_reset_clears_subject_and_slots(machine, fresh):
    session, _ = run(machine, fresh, "VR chahiye", "4 log")
    session, action = machine.transition(session, "start over")
    assert session.stage == Stage.INIT
    assert session.subject is None
    assert session.slots == {}
    assert session.pending_fields == []
    assert action == GenerateReply(mode=ReplyMode.FREE)


def test_no_subject_is_free_reply(machine, fresh):
    session, action = machine.transition(fresh, "what are your timings?")
    assert session.stage == Stage.INIT
    assert action == GenerateReply(mode=ReplyMode.FREE)
    assert session.last_user_text == "what are your timings?"


def test_zero_matches_leave_state_unchanged(machine, fresh):
    session, _ = machine.transition(fresh, "VR chahiye")
    after, action = machine.transition(session, "kitna price hai?")
    assert after.slots == session.slots
    assert after.pending_fields == session.pending_fields
    assert after.stage == Stage.COLLECTING
    assert isinstance(action, GenerateReply)


def test_filled_slots_are_never_overwritten(machine, fresh):
    session, _ = run(machine, fresh, "VR chahiye", "4 log")
    session, _ = machine.transition(session, "6 log, kal")
    assert session.slots["group_size"] == 4
    assert session.slots["date"] == "tomorrow"


def test_pending_fields_only_shrink(machine, fresh):
    session, _ = machine.transition(fresh, "birthday party")
    sizes = [len(session.pending_fields)]
    for text in ["hmm", "8 bande", "what is the price", "kal", "7pm", "Rahul"]:
        session, _ = machine.transition(session, text)
        sizes.append(len(session.pending_fields))
    assert sizes == sorted(sizes, reverse=True)
    assert session.stage == Stage.CONFIRMING
    assert session.slots["contact_name"] == "Rahul"


def test_free_text_waits_until_last(machine, fresh):
    session, _ = run(machine, fresh, "party", "8 bande")
    session, _ = machine.transition(session, "something fun")
    assert "contact_name" not in session.slots
    assert session.pending_fields == ["date", "time", "contact_name"]


def test_one_span_fills_one_field(machine, fresh):
    session, _ = machine.transition(fresh, "VR chahiye")
    session, _ = machine.transition(session, "5pm")
    assert session.slots == {"time": "5pm"}
    assert "group_size" in session.pending_fields


def test_confirming_stays_confirming(machine, fresh):
    session, _ = run(machine, fresh, "VR chahiye", "4 log kal 5pm")
    assert session.stage == Stage.CONFIRMING
    session, action = machine.transition(session, "ok great")
    assert session.stage == Stage.CONFIRMING
    assert action.mode == ReplyMode.CONFIRM


def test_transition_does_not_mutate_input(machine, fresh):
    machine.transition(fresh, "VR chahiye 4 log")
    assert fresh.stage == Stage.INIT
    assert fresh.slots == {}
