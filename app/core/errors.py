"""Failure kinds of the orchestration pipeline. Each maps to one defined fallback."""

from __future__ import annotations


class OrchestrationError(Exception):
    """Base class for pipeline failures."""


class DuplicateEventError(OrchestrationError):
    """The event id is already stored. Benign: stop processing."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event {event_id} already recorded")
        self.event_id = event_id


class TranscriptionError(OrchestrationError):
    """Voice note could not be turned into text."""


class EmbeddingError(OrchestrationError):
    """Query vector could not be computed; retrieval degrades to no context."""


class GenerationError(OrchestrationError):
    """Generation call failed or timed out; the policy substitutes fallback text."""


class DeliveryError(OrchestrationError):
    """Channel refused or failed to deliver the reply."""


class ConfigurationMissingError(OrchestrationError):
    """Required channel configuration (e.g. credentials) is absent."""
