from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class IntentKind(str, Enum):
    CREATE_TASK = "create_task"
    GET_TASKS = "get_tasks"
    UPDATE_TASK = "update_task"
    SEND_EMAIL = "send_email"
    REMEMBER = "remember"
    GET_WEATHER = "get_weather"
    GET_NEWS = "get_news"
    ADD_CALENDAR_EVENT = "add_calendar_event"
    GET_CALENDAR_EVENTS = "get_calendar_events"
    TIMEBLOCK_DAY = "timeblock_day"
    CREATE_NOTE = "create_note"
    GET_NOTES = "get_notes"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> Optional["IntentKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CONVERSATIONAL = "conversational"


class Intent(BaseModel):
    """One structured intent as produced by the upstream extraction step."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: str = Field(default="", validation_alias=AliasChoices("kind", "intent"))
    natural_language_response: str = Field(
        default="",
        validation_alias=AliasChoices("natural_language_response", "response"),
    )
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            for key in ("kind", "intent", "natural_language_response", "response"):
                if key in data and data[key] is None:
                    data[key] = ""
            if data.get("parameters") is None:
                data["parameters"] = {}
        return data


class ExecutionOutcome(BaseModel):
    """Result of running one intent.

    Handler-specific identifiers (task_id, message_id, created_events, ...) are
    carried as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    display_response: Optional[str] = None
    spoken_response: Optional[str] = None
    response: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_visible_text(self) -> "ExecutionOutcome":
        if not self.success and not self.error:
            raise ValueError("failed outcome requires an error message")
        if self.success and not (self.display_response or self.response):
            raise ValueError("successful outcome requires display_response or response")
        return self

    @classmethod
    def ok(cls, response: str, **extra: Any) -> "ExecutionOutcome":
        return cls(success=True, response=response, **extra)

    @classmethod
    def fail(cls, error: str, **extra: Any) -> "ExecutionOutcome":
        return cls(success=False, error=error, **extra)

    def summary_text(self) -> str:
        if self.success:
            return self.display_response or self.response or ""
        return self.error or ""

    def speech_text(self) -> str:
        return self.spoken_response or self.response or self.display_response or self.error or ""


class StepOutcome(BaseModel):
    kind: str
    action_id: Optional[str] = None
    outcome: ExecutionOutcome


class AggregatedOutcome(BaseModel):
    success: bool
    display_response: str
    spoken_response: str
    steps: List[StepOutcome] = Field(default_factory=list)


class ActionRecord(BaseModel):
    id: str
    user_id: str
    session_id: str
    transcript: str
    intent_kind: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    status: ExecutionStatus
    result: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None


class Session(BaseModel):
    id: str
    user_id: str
    created_at: Optional[str] = None


class ExecuteRequest(BaseModel):
    session_id: str = Field(min_length=1)
    transcript: str = ""
    intent: Intent


class ExecuteBatchRequest(BaseModel):
    session_id: str = Field(min_length=1)
    transcript: str = ""
    intents: List[Intent]


class ConfirmationRequest(BaseModel):
    intents: List[Intent]


class ConfirmationResponse(BaseModel):
    requires_confirmation: bool


class ExecuteResponse(BaseModel):
    status: Literal["completed", "failed", "conversational"]
    success: bool
    result: ExecutionOutcome
    action_id: Optional[str] = None
    audio_url: Optional[str] = None


class ExecuteBatchResponse(BaseModel):
    success: bool
    result: AggregatedOutcome
    audio_url: Optional[str] = None
