from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from action_executor.dispatcher import dispatch
from action_executor.errors import ActionExecutorError, AuditError, InvalidRequestError
from action_executor.handlers.context import HandlerContext
from action_executor.models.intents import (
    AggregatedOutcome,
    ExecutionOutcome,
    ExecutionStatus,
    Intent,
    IntentKind,
    StepOutcome,
)
from action_executor.storage.db import create_action, fail_stale_actions, update_action_status
from action_executor.util.canonical import clone_parameters

logger = logging.getLogger("action_executor.execution")

TERMINAL_UPDATE_ATTEMPTS = 2
INTERRUPTED_MESSAGE = "This action was interrupted before its result could be recorded."


@dataclass
class ExecutedIntent:
    action_id: str
    status: ExecutionStatus
    outcome: ExecutionOutcome


def _outcome_payload(outcome: ExecutionOutcome) -> dict:
    return outcome.model_dump(mode="json", exclude_none=True)


def _record_conversation(
    ctx: HandlerContext,
    *,
    user_id: str,
    session_id: str,
    transcript: str,
    intent: Intent,
) -> ExecutedIntent:
    outcome = ExecutionOutcome.ok(intent.natural_language_response or "Okay.")
    try:
        record = create_action(
            ctx.engine,
            user_id=user_id,
            session_id=session_id,
            transcript=transcript,
            intent=intent.kind,
            parameters=clone_parameters(intent.parameters),
            status=ExecutionStatus.CONVERSATIONAL.value,
            result=_outcome_payload(outcome),
            created_at=ctx.clock(),
        )
    except SQLAlchemyError as exc:
        raise AuditError("Failed to store conversation") from exc
    logger.info("conversation_recorded action_id=%s session_id=%s", record["id"], session_id)
    return ExecutedIntent(action_id=record["id"], status=ExecutionStatus.CONVERSATIONAL, outcome=outcome)


def _finish_record(ctx: HandlerContext, action_id: str, status: ExecutionStatus, outcome: ExecutionOutcome) -> None:
    for attempt in range(1, TERMINAL_UPDATE_ATTEMPTS + 1):
        try:
            update_action_status(
                ctx.engine,
                action_id=action_id,
                status=status.value,
                result=_outcome_payload(outcome),
                updated_at=ctx.clock(),
            )
            return
        except SQLAlchemyError:
            logger.exception("action_update_failed action_id=%s attempt=%s", action_id, attempt)
    # The handler has already run, so its outcome is still returned to the caller;
    # recover_stale_actions closes the record once the store is reachable again.
    logger.error("action_left_pending action_id=%s status=%s", action_id, status.value)


def recover_stale_actions(ctx: HandlerContext) -> List[str]:
    """Fail records left ``pending`` longer than the configured timeout."""
    now = ctx.clock()
    cutoff = now - timedelta(minutes=ctx.settings.pending_action_timeout_minutes)
    outcome = ExecutionOutcome.fail(INTERRUPTED_MESSAGE, error_kind="interrupted")
    recovered = fail_stale_actions(
        ctx.engine,
        created_before=cutoff,
        result=_outcome_payload(outcome),
        now=now,
    )
    for action_id in recovered:
        logger.warning("stale_action_failed action_id=%s", action_id)
    return recovered


def run_intent(
    ctx: HandlerContext,
    *,
    user_id: str,
    session_id: str,
    transcript: str,
    intent: Intent,
) -> ExecutedIntent:
    """Execute one intent with a pending-then-terminal audit record around it."""
    if not intent.kind or not intent.kind.strip():
        raise InvalidRequestError("Intent kind is required")
    if intent.kind == IntentKind.OTHER.value:
        return _record_conversation(
            ctx, user_id=user_id, session_id=session_id, transcript=transcript, intent=intent
        )

    try:
        record = create_action(
            ctx.engine,
            user_id=user_id,
            session_id=session_id,
            transcript=transcript,
            intent=intent.kind,
            parameters=clone_parameters(intent.parameters),
            status=ExecutionStatus.PENDING.value,
            created_at=ctx.clock(),
        )
    except SQLAlchemyError as exc:
        raise AuditError("Failed to create action record") from exc
    action_id = record["id"]
    logger.info("action_created action_id=%s kind=%s session_id=%s", action_id, intent.kind, session_id)

    try:
        outcome = dispatch(ctx, user_id, intent)
    except InvalidRequestError as exc:
        outcome = ExecutionOutcome.fail(exc.message, error_kind="validation")
    except ActionExecutorError as exc:
        outcome = ExecutionOutcome.fail(str(exc))
    except Exception:
        logger.exception("action_handler_raised action_id=%s kind=%s", action_id, intent.kind)
        outcome = ExecutionOutcome.fail(f"Something went wrong while running {intent.kind}.", error_kind="internal")

    status = ExecutionStatus.COMPLETED if outcome.success else ExecutionStatus.FAILED
    _finish_record(ctx, action_id, status, outcome)
    logger.info("action_finished action_id=%s kind=%s status=%s", action_id, intent.kind, status.value)
    return ExecutedIntent(action_id=action_id, status=status, outcome=outcome)


def execute_intent(
    ctx: HandlerContext,
    *,
    user_id: str,
    session_id: str,
    transcript: str,
    intent: Intent,
) -> ExecutionOutcome:
    return run_intent(ctx, user_id=user_id, session_id=session_id, transcript=transcript, intent=intent).outcome


def _single_line(text: str) -> str:
    """Fold a multi-line detail (a header followed by list lines) onto one line."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) <= 1:
        return lines[0] if lines else ""
    return f"{lines[0]} {'; '.join(lines[1:])}"


def aggregate(steps: Sequence[StepOutcome]) -> AggregatedOutcome:
    lines: List[str] = []
    for step in steps:
        if step.outcome.success:
            lines.append(f"✓ {step.kind}: {_single_line(step.outcome.summary_text())}")
        else:
            lines.append(f"✗ {step.kind}: {_single_line(step.outcome.error or '')}")
    succeeded = sum(1 for step in steps if step.outcome.success)
    total = len(steps)
    success = succeeded == total
    spoken = f"All {total} actions completed." if success else f"{succeeded} of {total} actions completed."
    return AggregatedOutcome(
        success=success,
        display_response="\n".join(lines),
        spoken_response=spoken,
        steps=list(steps),
    )


def execute_intents(
    ctx: HandlerContext,
    *,
    user_id: str,
    session_id: str,
    transcript: str,
    intents: Sequence[Intent],
) -> AggregatedOutcome:
    """Run a batch strictly in order; a failing step never stops the steps after it."""
    runnable = [intent for intent in intents if intent.kind and intent.kind.strip()]
    if not runnable:
        raise InvalidRequestError("No executable intents supplied")

    steps: List[StepOutcome] = []
    for position, intent in enumerate(runnable, start=1):
        action_id: Optional[str] = None
        try:
            executed = run_intent(
                ctx, user_id=user_id, session_id=session_id, transcript=transcript, intent=intent
            )
            action_id, outcome = executed.action_id, executed.outcome
        except AuditError as exc:
            outcome = ExecutionOutcome.fail(str(exc), error_kind="storage")
        except Exception:
            logger.exception("batch_step_raised position=%s kind=%s", position, intent.kind)
            outcome = ExecutionOutcome.fail(f"Something went wrong while running {intent.kind}.", error_kind="internal")
        steps.append(StepOutcome(kind=intent.kind, action_id=action_id, outcome=outcome))

    result = aggregate(steps)
    logger.info(
        "batch_finished session_id=%s steps=%s succeeded=%s",
        session_id,
        len(steps),
        sum(1 for step in steps if step.outcome.success),
    )
    return result
