"""Service recording the local user's create-once answers."""

from __future__ import annotations

import logging

from zone_app.core.competition_service import CompetitionService
from zone_app.core.errors import MalformedPayloadError, SubmissionRejectedError, TransportError
from zone_app.core.models import CompetitionQuestion, CompetitionResponse
from zone_app.core.results import CelebrationOutcome, SubmissionResult, SubmissionStatus

logger = logging.getLogger(__name__)


def next_streak(previous_streak: int, is_correct: bool) -> int:
    return previous_streak + 1 if is_correct else 0


class ResponseTracker:
    """Guards submissions locally and stores the backend-confirmed responses.

    A question gets at most one response. Duplicates, invalid options and
    questions that are no longer open are refused without a network call.
    """

    def __init__(self, service: CompetitionService) -> None:
        self._service = service
        self._responses: dict[str, CompetitionResponse] = {}
        self._in_flight: set[str] = set()
        self._locked: set[str] = set()

    def has_response(self, question_id: str) -> bool:
        """True when this user already answered the question."""
        return question_id in self._responses

    def get_response(self, question_id: str) -> CompetitionResponse | None:
        """Return the stored response for a question, if any."""
        return self._responses.get(question_id)

    def is_locked(self, question_id: str) -> bool:
        """True once the question closed."""
        return question_id in self._locked

    def reset(self, question_id: str) -> None:
        """Forget local submission state for a question that is (re)opening."""
        self._responses.pop(question_id, None)
        self._in_flight.discard(question_id)
        self._locked.discard(question_id)

    def lock(self, question_id: str) -> None:
        """Refuse every later submission for a closed question."""
        self._locked.add(question_id)

    def restore(self, response: CompetitionResponse) -> None:
        """Adopt a response the backend already holds (e.g. after a resync)."""
        self._responses[response.question_id] = response

    def clear(self) -> None:
        """Forget every response and lock."""
        self._responses.clear()
        self._in_flight.clear()
        self._locked.clear()

    def submit(
        self,
        active_question: CompetitionQuestion | None,
        question_id: str,
        option_index: int,
        response_time_ms: int,
        previous_streak: int = 0,
    ) -> SubmissionResult:
        """Validate and send one answer. Failures come back in the result."""
        if active_question is None:
            return SubmissionResult(SubmissionStatus.NO_ACTIVE_QUESTION, message="No question is open.")
        if active_question.id != question_id:
            return SubmissionResult(
                SubmissionStatus.QUESTION_MISMATCH,
                message=f"Question {question_id} is not the active question.",
            )
        if question_id in self._responses or question_id in self._in_flight:
            logger.info("Ignoring duplicate submission for question %s", question_id)
            return SubmissionResult(
                SubmissionStatus.DUPLICATE,
                response=self._responses.get(question_id),
                message="You already answered this question.",
            )
        if question_id in self._locked or not active_question.is_active:
            return SubmissionResult(SubmissionStatus.QUESTION_CLOSED, message="This question is closed.")
        if not active_question.is_valid_option(option_index):
            return SubmissionResult(
                SubmissionStatus.INVALID_OPTION,
                message=f"Option {option_index} is out of range.",
            )

        self._in_flight.add(question_id)
        try:
            response = self._service.submit_answer(question_id, option_index, max(0, int(response_time_ms)))
        except SubmissionRejectedError as exc:
            logger.info("Submission for question %s rejected: %s", question_id, exc.reason)
            return SubmissionResult(SubmissionStatus.REJECTED, message=str(exc))
        except TransportError as exc:
            logger.warning("Submission for question %s failed: %s", question_id, exc)
            return SubmissionResult(SubmissionStatus.TRANSPORT_ERROR, message=str(exc))
        except MalformedPayloadError as exc:
            logger.warning("Submission for question %s returned a malformed response: %s", question_id, exc)
            return SubmissionResult(SubmissionStatus.MALFORMED_RESPONSE, message=str(exc))
        finally:
            self._in_flight.discard(question_id)

        self._responses[question_id] = response
        celebration = CelebrationOutcome(
            is_correct=response.is_correct,
            points_earned=response.points_earned,
            new_streak=next_streak(previous_streak, response.is_correct),
        )
        return SubmissionResult(SubmissionStatus.ACCEPTED, response=response, celebration=celebration)
