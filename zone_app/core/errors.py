"""Exception types raised by the competition service layer."""

from __future__ import annotations


class CompetitionError(Exception):
    """Base class for all competition service failures."""


class TransportError(CompetitionError):
    """Network or channel failure. Callers may retry with backoff."""


class MalformedPayloadError(CompetitionError):
    """A server payload could not be decoded into a domain model."""


class NotFoundError(CompetitionError):
    """The requested round, question, response or score does not exist."""


class SubmissionRejectedError(CompetitionError):
    """The backend declined an answer submission."""

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason


# Reason codes carried by SubmissionRejectedError.
REASON_QUESTION_NOT_ACTIVE = "question_not_active"
REASON_TIME_EXPIRED = "time_expired"
REASON_DUPLICATE_RESPONSE = "duplicate_response"
REASON_INVALID_OPTION = "invalid_option"
REASON_UNKNOWN_QUESTION = "unknown_question"
