from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from action_executor.errors import InvalidRequestError
from action_executor.models.intents import IntentKind

Priority = Literal["high", "medium", "low"]
TaskStatus = Literal["todo", "in_progress", "done"]


class IntentParams(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Extraction emits explicit nulls for omitted fields; let defaults apply.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None and value != ""}
        return data


class CreateTaskParams(IntentParams):
    title: str = Field(min_length=1)
    priority: Priority = "medium"
    due_date: Optional[str] = None


class GetTasksParams(IntentParams):
    status: Literal["all", "todo", "in_progress", "done"] = "todo"
    priority: Optional[Priority] = None


class UpdateTaskParams(IntentParams):
    title: str = Field(min_length=1)
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None


class SendEmailParams(IntentParams):
    to: str = Field(min_length=1)
    subject: str = ""
    body: str = Field(min_length=1)


class RememberParams(IntentParams):
    section: str = "General"
    content: str = Field(min_length=1)


class GetWeatherParams(IntentParams):
    location: Optional[str] = None


class GetNewsParams(IntentParams):
    topic: Optional[str] = None


class AddCalendarEventParams(IntentParams):
    title: str = Field(min_length=1)
    date: Optional[str] = None
    start_time: str = Field(min_length=1)
    end_time: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None


class GetCalendarEventsParams(IntentParams):
    date: Optional[str] = None
    timeframe: Literal["day", "week", "month"] = "day"


class TimeBlock(IntentParams):
    title: str = Field(min_length=1)
    start_time: str = Field(min_length=1)
    end_time: str = Field(min_length=1)
    description: Optional[str] = None


class TimeblockDayParams(IntentParams):
    date: Optional[str] = None
    blocks: List[TimeBlock] = Field(min_length=1)


class CreateNoteParams(IntentParams):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    folder: Optional[str] = None


class GetNotesParams(IntentParams):
    query: Optional[str] = None
    folder: Optional[str] = None


class ConversationalParams(IntentParams):
    model_config = ConfigDict(extra="allow")


PARAMETER_MODELS: Dict[IntentKind, Type[IntentParams]] = {
    IntentKind.CREATE_TASK: CreateTaskParams,
    IntentKind.GET_TASKS: GetTasksParams,
    IntentKind.UPDATE_TASK: UpdateTaskParams,
    IntentKind.SEND_EMAIL: SendEmailParams,
    IntentKind.REMEMBER: RememberParams,
    IntentKind.GET_WEATHER: GetWeatherParams,
    IntentKind.GET_NEWS: GetNewsParams,
    IntentKind.ADD_CALENDAR_EVENT: AddCalendarEventParams,
    IntentKind.GET_CALENDAR_EVENTS: GetCalendarEventsParams,
    IntentKind.TIMEBLOCK_DAY: TimeblockDayParams,
    IntentKind.CREATE_NOTE: CreateNoteParams,
    IntentKind.GET_NOTES: GetNotesParams,
    IntentKind.OTHER: ConversationalParams,
}


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "parameters"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def parse_parameters(kind: IntentKind, raw: Dict[str, Any]) -> IntentParams:
    model = PARAMETER_MODELS[kind]
    try:
        return model.model_validate(raw or {})
    except ValidationError as exc:
        raise InvalidRequestError(
            f"Invalid parameters for {kind.value}: {_describe_errors(exc)}",
            details={"kind": kind.value, "errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
