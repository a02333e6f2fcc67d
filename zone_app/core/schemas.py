"""Pydantic schemas for the JSON the competition backend sends.

Domain models decode through these with ``decode``; a payload that does
not validate raises ``MalformedPayloadError``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, StrictBool, StrictInt, StrictStr, ValidationError, field_validator, model_validator

from zone_app.constants.competition_constants import (
    ANONYMOUS_NAME,
    DEFAULT_BADGE_POINTS,
    DEFAULT_QUESTION_POINTS,
    MAX_OPTION_COUNT,
    MIN_OPTION_COUNT,
)
from zone_app.core.errors import MalformedPayloadError

SchemaT = TypeVar("SchemaT", bound="WireSchema")


class WireSchema(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # A null field takes its default, exactly like an omitted one.
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data


class RoundSchema(WireSchema):
    id: StrictStr
    event_id: StrictStr
    name: StrictStr
    round_number: StrictInt = 1
    status: Literal["upcoming", "active", "completed"] = "upcoming"
    question_count: StrictInt = 0
    completed_questions: StrictInt = 0
    description: StrictStr | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class QuestionSchema(WireSchema):
    id: StrictStr
    round_id: StrictStr
    question: StrictStr
    options: list[StrictStr]
    question_number: StrictInt = 1
    points: StrictInt = DEFAULT_QUESTION_POINTS
    status: Literal["pending", "active", "closed"] = "pending"
    time_limit_seconds: StrictInt | None = None
    correct_option_index: StrictInt | None = None
    activated_at: datetime | None = None

    @field_validator("options")
    @classmethod
    def _check_option_count(cls, options: list[str]) -> list[str]:
        if not MIN_OPTION_COUNT <= len(options) <= MAX_OPTION_COUNT:
            raise ValueError(f"question must have {MIN_OPTION_COUNT}-{MAX_OPTION_COUNT} options, got {len(options)}")
        return options

    @model_validator(mode="after")
    def _check_correct_index(self) -> QuestionSchema:
        if self.correct_option_index is not None and not 0 <= self.correct_option_index < len(self.options):
            raise ValueError(f"correct option index {self.correct_option_index} is out of range")
        return self


class ResponseSchema(WireSchema):
    id: StrictStr
    question_id: StrictStr
    user_id: StrictStr
    selected_option: StrictInt
    created_at: datetime
    is_correct: StrictBool = False
    points_earned: StrictInt = 0
    response_time_ms: StrictInt | None = None


class ScoreSchema(WireSchema):
    event_id: StrictStr
    user_id: StrictStr
    total_score: StrictInt = 0
    correct_answers: StrictInt = 0
    total_answers: StrictInt = 0
    current_streak: StrictInt = 0
    best_streak: StrictInt = 0
    rank: StrictInt = 0


class LeaderboardEntrySchema(WireSchema):
    user_id: StrictStr
    user_name: StrictStr = ANONYMOUS_NAME
    user_avatar: StrictStr | None = None
    rank: StrictInt = 0
    total_score: StrictInt = 0
    correct_answers: StrictInt = 0
    total_answers: StrictInt = 0
    current_streak: StrictInt = 0


class PresenceSchema(WireSchema):
    event_id: StrictStr
    online_count: StrictInt = 0
    answering_count: StrictInt = 0


class CompetitionStatsSchema(WireSchema):
    event_id: StrictStr
    participant_count: StrictInt = 0
    average_score: StrictInt = 0
    highest_score: StrictInt = 0
    total_questions_answered: StrictInt = 0


class BadgeSchema(WireSchema):
    id: StrictStr
    name: StrictStr
    icon: StrictStr
    badge_type: StrictStr
    description: StrictStr = ""
    rarity: StrictStr = "COMMON"
    points_value: StrictInt = DEFAULT_BADGE_POINTS
    earned_at: datetime | None = None


def decode(schema: type[SchemaT], data: Any) -> SchemaT:
    """Validate ``data`` against ``schema``."""
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "payload"
        raise MalformedPayloadError(f"Invalid {schema.__name__} at '{location}': {first['msg']}") from exc
