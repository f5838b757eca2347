"""Tests for slot matchers and keyword lexicons."""

import pytest

from app.core.matchers import (
    Lexicon,
    consume,
    match_date,
    match_free_text,
    match_number,
    match_time,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("4 log", 4),
        ("we are 6", 6),
        ("five people", 5),
        ("12 members aa rahe hain", 12),
    ],
)
def test_match_number(text, expected):
    capture = match_number(text)
    assert capture is not None
    assert capture.value == expected


@pytest.mark.parametrize("text", ["6 pm", "12 dec", "5 baje", "17:00", "hello"])
def test_match_number_ignores_times_and_dates(text):
    assert match_number(text) is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ("5pm", "5pm"),
        ("around 5:30 pm", "5:30pm"),
        ("17:00", "17:00"),
        ("5 baje", "5 baje"),
        ("shaam ko", "shaam"),
    ],
)
def test_match_time(text, expected):
    capture = match_time(text)
    assert capture is not None
    assert capture.value == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("today", "today"),
        ("kal", "tomorrow"),
        ("day after tomorrow", "day after tomorrow"),
        ("12/12", "12/12"),
        ("12 dec", "12 dec"),
        ("next saturday", "next saturday"),
    ],
)
def test_match_date(text, expected):
    capture = match_date(text)
    assert capture is not None
    assert capture.value == expected


def test_match_free_text_trims_punctuation():
    capture = match_free_text("  Rahul Sharma. ")
    assert capture.value == "Rahul Sharma"


def test_match_free_text_needs_a_word():
    assert match_free_text(" 42 ") is None
    assert match_free_text("   ") is None


def test_consume_blanks_span_and_keeps_offsets():
    text = "4 log, 5pm"
    capture = match_number(text)
    remaining = consume(text, capture)
    assert len(remaining) == len(text)
    assert match_number(remaining) is None
    assert match_time(remaining).value == "5pm"


def test_whole_word_lexicon():
    lexicon = Lexicon(["no", "not interested"])
    assert lexicon.matches("No thanks")
    assert lexicon.find("i am not interested") == "not interested"
    assert not lexicon.matches("i know the place")
    assert not lexicon.matches("nothing else")


def test_substring_lexicon():
    lexicon = Lexicon(["restart", "/start"], whole_words=False)
    assert lexicon.matches("please RESTART the booking")
    assert lexicon.matches("/start")
    assert not lexicon.matches("start")
