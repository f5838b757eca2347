"""
Declarative conversation domain: subjects, their required slots, and lexicons.

The state machine reads only this table, so a deployment changes the booking
flow by pointing DOMAIN_CONFIG_PATH at a JSON file with the same shape.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

MatcherKind = Literal["number", "time", "date", "free_text"]


class FieldSpec(BaseModel):
    """One slot. label is how the reply prompt refers to it."""

    name: str
    matcher: MatcherKind
    label: str


class SubjectSpec(BaseModel):
    """A topic the user can ask for; selecting it seeds pending_fields with fields, in order."""

    name: str
    label: str
    keywords: list[str]
    fields: list[str]


class DomainConfig(BaseModel):
    reset_keywords: list[str] = Field(default_factory=list)
    reject_keywords: list[str] = Field(default_factory=list)
    close_message: str
    fields: list[FieldSpec]
    subjects: list[SubjectSpec]

    @model_validator(mode="after")
    def check_subject_fields(self) -> "DomainConfig":
        known = {f.name for f in self.fields}
        for subject in self.subjects:
            unknown = [f for f in subject.fields if f not in known]
            if unknown:
                raise ValueError(
                    f"Subject {subject.name!r} references unknown fields: {unknown}"
                )
        return self

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def subject(self, name: str) -> Optional[SubjectSpec]:
        for spec in self.subjects:
            if spec.name == name:
                return spec
        return None


CLOSE_MESSAGE = "Theek hai 😊 Agar future me help chahiye ho to bataiyega."

DEFAULT_DOMAIN = DomainConfig(
    reset_keywords=["restart", "start over", "reset", "new booking", "/start"],
    reject_keywords=[
        "no",
        "nahi",
        "nahin",
        "not interested",
        "thanks",
        "thank you",
        "later",
        "bye",
        "stop",
    ],
    close_message=CLOSE_MESSAGE,
    fields=[
        FieldSpec(name="group_size", matcher="number", label="number of people"),
        FieldSpec(name="date", matcher="date", label="date of the visit"),
        FieldSpec(name="time", matcher="time", label="preferred time slot"),
        FieldSpec(name="contact_name", matcher="free_text", label="name for the booking"),
    ],
    subjects=[
        SubjectSpec(
            name="vr",
            label="VR experience booking",
            keywords=["vr", "virtual reality", "vr game", "vr games"],
            fields=["group_size", "date", "time"],
        ),
        SubjectSpec(
            name="party",
            label="birthday party booking",
            keywords=["birthday", "party", "celebration"],
            fields=["group_size", "date", "time", "contact_name"],
        ),
    ],
)


def load_domain_config(path: Optional[str] = None) -> DomainConfig:
    """Load the domain table from a JSON file, or return the built-in default."""
    if not path:
        return DEFAULT_DOMAIN
    return DomainConfig.model_validate_json(Path(path).read_text(encoding="utf-8"))
