from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Type, TypeVar

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from action_executor.config import Settings, load_settings
from action_executor.confirmation import requires_confirmation
from action_executor.errors import AuditError, InvalidRequestError
from action_executor.execution import execute_intents, recover_stale_actions, run_intent
from action_executor.handlers.context import HandlerContext
from action_executor.integrations.calendar import CalendarClient, GoogleCalendarClient
from action_executor.integrations.gmail import EmailSender, GmailSender
from action_executor.integrations.speech import HttpSpeechSynthesizer, SpeechSynthesizer, StubSpeechSynthesizer
from action_executor.integrations.tokens import DbTokenProvider, TokenProvider
from action_executor.integrations.weather import OpenMeteoWeatherClient, WeatherClient
from action_executor.models.intents import (
    ActionRecord,
    ConfirmationRequest,
    ConfirmationResponse,
    ExecuteBatchRequest,
    ExecuteBatchResponse,
    ExecuteRequest,
    ExecuteResponse,
    Session,
)
from action_executor.speech_text import format_for_tts
from action_executor.storage.db import check_db, create_db_engine, create_session, get_session, list_session_actions, utc_now

logger = logging.getLogger("action_executor")

RequestModel = TypeVar("RequestModel", bound=BaseModel)


def build_error_payload(
    code: str,
    message: str,
    status_code: int | None = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"code": code, "message": message}
    if status_code is not None or details:
        detail_payload = dict(details or {})
        if status_code is not None:
            detail_payload.setdefault("status_code", status_code)
        payload["details"] = detail_payload
    return payload


def build_error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": build_error_payload(code, message, status_code=status_code, details=details)},
    )


def _isoformat(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def action_record_from_row(row: Dict[str, Any]) -> ActionRecord:
    return ActionRecord(
        id=row["id"],
        user_id=row["user_id"],
        session_id=row["session_id"],
        transcript=row.get("transcript") or "",
        intent_kind=row["intent"],
        parameters=row.get("parameters") or {},
        status=row["execution_status"],
        result=row.get("execution_result"),
        created_at=_isoformat(row.get("created_at")),
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    token_provider: TokenProvider | None = None,
    calendar: CalendarClient | None = None,
    email_sender: EmailSender | None = None,
    weather: WeatherClient | None = None,
    speech: SpeechSynthesizer | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    app_settings = app_settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            recover_stale_actions(app.state.context)
        except SQLAlchemyError as exc:
            logger.warning("stale_action_recovery_failed error=%s", exc.__class__.__name__)
        yield

    app = FastAPI(lifespan=lifespan)
    cors_origins = [origin.strip() for origin in app_settings.cors_origins.split(",") if origin.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    engine = create_db_engine(app_settings.database_url)
    timeout = app_settings.external_timeout_seconds
    app.state.settings = app_settings
    app.state.engine = engine
    app.state.context = HandlerContext(
        engine=engine,
        settings=app_settings,
        token_provider=token_provider
        or DbTokenProvider(
            engine,
            token_url=app_settings.google_token_url,
            client_id=app_settings.google_client_id,
            client_secret=app_settings.google_client_secret,
            refresh_margin_seconds=app_settings.token_refresh_margin_seconds,
            timeout_seconds=timeout,
        ),
        calendar=calendar
        or GoogleCalendarClient(base_url=app_settings.google_calendar_base_url, timeout_seconds=timeout),
        email_sender=email_sender or GmailSender(base_url=app_settings.gmail_base_url, timeout_seconds=timeout),
        weather=weather
        or OpenMeteoWeatherClient(
            geocoding_url=app_settings.weather_geocoding_url,
            forecast_url=app_settings.weather_forecast_url,
            timeout_seconds=timeout,
        ),
        clock=clock or utc_now,
    )

    def build_speech_synthesizer(settings: Settings) -> SpeechSynthesizer:
        if settings.tts_base_url:
            return HttpSpeechSynthesizer(
                base_url=settings.tts_base_url,
                bearer_token=settings.tts_bearer_token,
                speak_path=settings.tts_speak_path,
                timeout_seconds=settings.external_timeout_seconds,
            )
        return StubSpeechSynthesizer()

    app.state.speech = speech or build_speech_synthesizer(app_settings)

    def get_settings() -> Settings:
        return app.state.settings

    def get_context() -> HandlerContext:
        return app.state.context

    def require_bearer(
        authorization: str | None = Header(default=None),
        settings: Settings = Depends(get_settings),
    ) -> None:
        if not authorization:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
        try:
            scheme, token = authorization.split(" ", 1)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization header")
        if scheme.lower() != "bearer" or token != settings.service_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token")

    def require_user(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
        if not x_user_id or not x_user_id.strip():
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
        return x_user_id.strip()

    async def parse_body(request: Request, model: Type[RequestModel]) -> RequestModel | JSONResponse:
        try:
            payload = json.loads(await request.body())
        except json.JSONDecodeError:
            return build_error_response(
                status_code=status.HTTP_400_BAD_REQUEST,
                code="bad_json",
                message="Invalid JSON payload",
            )
        if not isinstance(payload, dict):
            return build_error_response(
                status_code=status.HTTP_400_BAD_REQUEST,
                code="schema_validation_failed",
                message="Request payload must be a JSON object",
            )
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            return build_error_response(
                status_code=status.HTTP_400_BAD_REQUEST,
                code="schema_validation_failed",
                message="Request payload failed schema validation",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            )

    def speak(text: str) -> Optional[str]:
        if not text:
            return None
        try:
            return app.state.speech.synthesize(format_for_tts(text))
        except Exception as exc:
            logger.warning("speech_synthesis_failed error=%s", exc)
            return None

    def invalid_request_response(exc: InvalidRequestError) -> JSONResponse:
        return build_error_response(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="invalid_request",
            message=exc.message,
            details=exc.details or None,
        )

    @app.get("/health")
    def health() -> Dict[str, str]:
        try:
            check_db(app.state.engine)
        except Exception:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")
        return {"status": "ok"}

    @app.get("/version")
    def version(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
        return {"version": settings.version, "git_sha": settings.git_sha}

    @app.post("/v1/confirmation", response_model=ConfirmationResponse)
    async def confirmation(
        request: Request,
        _: None = Depends(require_bearer),
    ) -> ConfirmationResponse:
        body = await parse_body(request, ConfirmationRequest)
        if isinstance(body, JSONResponse):
            return body
        return ConfirmationResponse(requires_confirmation=requires_confirmation(body.intents))

    @app.post("/v1/execute", response_model=ExecuteResponse)
    async def execute(
        request: Request,
        _: None = Depends(require_bearer),
        user_id: str = Depends(require_user),
        ctx: HandlerContext = Depends(get_context),
    ) -> ExecuteResponse:
        body = await parse_body(request, ExecuteRequest)
        if isinstance(body, JSONResponse):
            return body
        logger.info("execute_received user_id=%s session_id=%s kind=%s", user_id, body.session_id, body.intent.kind)
        try:
            executed = run_intent(
                ctx,
                user_id=user_id,
                session_id=body.session_id,
                transcript=body.transcript,
                intent=body.intent,
            )
        except InvalidRequestError as exc:
            return invalid_request_response(exc)
        except (AuditError, SQLAlchemyError):
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")
        return ExecuteResponse(
            status=executed.status.value,
            success=executed.outcome.success,
            result=executed.outcome,
            action_id=executed.action_id,
            audio_url=speak(executed.outcome.speech_text()),
        )

    @app.post("/v1/execute/batch", response_model=ExecuteBatchResponse)
    async def execute_batch(
        request: Request,
        _: None = Depends(require_bearer),
        user_id: str = Depends(require_user),
        ctx: HandlerContext = Depends(get_context),
    ) -> ExecuteBatchResponse:
        body = await parse_body(request, ExecuteBatchRequest)
        if isinstance(body, JSONResponse):
            return body
        logger.info(
            "execute_batch_received user_id=%s session_id=%s intents=%s",
            user_id,
            body.session_id,
            len(body.intents),
        )
        try:
            result = execute_intents(
                ctx,
                user_id=user_id,
                session_id=body.session_id,
                transcript=body.transcript,
                intents=body.intents,
            )
        except InvalidRequestError as exc:
            return invalid_request_response(exc)
        return ExecuteBatchResponse(success=result.success, result=result, audio_url=speak(result.spoken_response))

    @app.post("/v1/sessions", response_model=Session)
    def start_session(
        _: None = Depends(require_bearer),
        user_id: str = Depends(require_user),
    ) -> Session:
        try:
            row = create_session(app.state.engine, user_id=user_id)
        except SQLAlchemyError:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")
        return Session(id=row["id"], user_id=row["user_id"], created_at=_isoformat(row.get("created_at")))

    @app.get("/v1/sessions/{session_id}/actions", response_model=List[ActionRecord])
    def session_actions(
        session_id: str,
        _: None = Depends(require_bearer),
        user_id: str = Depends(require_user),
    ) -> List[ActionRecord]:
        try:
            session_row = get_session(app.state.engine, session_id)
            if session_row and session_row["user_id"] != user_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
            rows = list_session_actions(app.state.engine, session_id, user_id=user_id)
        except SQLAlchemyError:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")
        return [action_record_from_row(row) for row in rows]

    return app
