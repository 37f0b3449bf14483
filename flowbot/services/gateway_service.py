# /flowbot/services/gateway_service.py

import json
import re
import time
import uuid
import asyncio
import structlog
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from flowbot.config import strings
from flowbot.models.api import OutboundFrame
from flowbot.models.flow import FlowConfig
from flowbot.models.session import ChatSession, utc_now
from flowbot.services.config_service import config_service
from flowbot.services.history_service import history_service
from flowbot.services.intent_service import intent_service
from flowbot.utils.metrics import flow_turns_counter, turn_duration_histogram
from flowbot.utils.session_lock import SessionLockManager
from flowbot.workflows.engine import EngineResult, receive_message, start_flow
from flowbot.workflows.errors import ConfigError, FlowError, ProtocolError, StaleSessionError

# Entry point used by the chat transport. Each connect / message event is one
# turn: load the active configuration and the session, run the engine, commit
# the new session state, and only then hand back the single response frame.

log = structlog.get_logger(__name__)

MAX_STALE_RETRIES = 3
SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]{1,128}$")

Step = Callable[[FlowConfig, ChatSession], Awaitable[EngineResult]]


@dataclass
class ConnectionContext:
    """Per-connection bookkeeping; discarded when the connection closes."""
    session_id: str
    connected_at: datetime = field(default_factory=utc_now)
    closed: bool = False

    def duration(self) -> float:
        return (utc_now() - self.connected_at).total_seconds()


class SessionGateway:
    def __init__(self, configs=None, histories=None, classifier=None, locks: Optional[SessionLockManager] = None):
        self.configs = configs or config_service
        self.histories = histories or history_service
        self.classifier = classifier or intent_service
        self.locks = locks or SessionLockManager()

    def open_connection(self, session_id: Optional[str] = None) -> ConnectionContext:
        """Create the context for a new connection, assigning a session id if the client brought none."""
        return ConnectionContext(session_id=session_id or uuid.uuid4().hex)

    async def on_connect(self, ctx: ConnectionContext) -> OutboundFrame:
        return await self._run_turn(ctx, "connect", self._connect_step)

    async def on_message(self, ctx: ConnectionContext, raw: Union[str, bytes]) -> OutboundFrame:
        try:
            payload = json.loads(raw)
        except (ValueError, TypeError):
            log.warning("Rejected malformed chat frame.", session_id=ctx.session_id, reason=ProtocolError.MALFORMED_FRAME)
            flow_turns_counter.labels(event="message", outcome="error").inc()
            return OutboundFrame.error(strings.INVALID_FRAME)

        async def message_step(config: FlowConfig, session: ChatSession) -> EngineResult:
            return await receive_message(config, session, payload, self.classifier)

        return await self._run_turn(ctx, "message", message_step)

    def on_disconnect(self, ctx: ConnectionContext) -> None:
        ctx.closed = True
        log.info(
            "Chat connection closed.",
            session_id=ctx.session_id,
            duration_seconds=round(ctx.duration(), 3),
            turn_in_flight=self.locks.is_held(ctx.session_id),
        )

    async def _connect_step(self, config: FlowConfig, session: ChatSession) -> EngineResult:
        # A returning client parked on a suspend point is re-prompted instead of restarted.
        if session.is_awaiting_input(config):
            return {
                "applied": False,
                "reason": "resumed",
                "session": session,
                "response": OutboundFrame.prompt(),
                "trace": [session.current_block_id],
            }
        return await start_flow(config, session, self.classifier)

    async def _run_turn(self, ctx: ConnectionContext, event: str, step: Step) -> OutboundFrame:
        # Shielded so a dropped connection cannot cancel a step halfway through its commit.
        started = time.perf_counter()
        frame = await asyncio.shield(self._locked_turn(ctx, event, step))
        turn_duration_histogram.labels(event=event).observe(time.perf_counter() - started)
        flow_turns_counter.labels(event=event, outcome=frame.type).inc()
        return frame

    async def _locked_turn(self, ctx: ConnectionContext, event: str, step: Step) -> OutboundFrame:
        # Stdlib loggers in the stores pick the session id up from the context.
        with structlog.contextvars.bound_contextvars(session_id=ctx.session_id):
            return await self._serialized_turn(ctx, event, step)

    async def _serialized_turn(self, ctx: ConnectionContext, event: str, step: Step) -> OutboundFrame:
        async with self.locks.hold(ctx.session_id):
            try:
                return await self._commit_turn(ctx, event, step)
            except ProtocolError as e:
                log.warning("Chat turn rejected.", session_id=ctx.session_id, event=event, reason=e.reason)
                return OutboundFrame.error(strings.PROTOCOL_ERROR_MESSAGES.get(e.reason, strings.PROCESSING_FAILED))
            except (ConfigError, FlowError) as e:
                log.error(
                    "Flow turn aborted.",
                    session_id=ctx.session_id,
                    block_id=e.block_id,
                    event=event,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return OutboundFrame.error(strings.INIT_FAILED if event == "connect" else strings.PROCESSING_FAILED)
            except Exception:
                log.exception("Unexpected failure during chat turn.", session_id=ctx.session_id, event=event)
                return OutboundFrame.error(strings.INIT_FAILED if event == "connect" else strings.PROCESSING_FAILED)

    async def _commit_turn(self, ctx: ConnectionContext, event: str, step: Step) -> OutboundFrame:
        if not SESSION_ID_PATTERN.match(ctx.session_id):
            raise ProtocolError(ProtocolError.INVALID_SESSION)

        config = await self.configs.get_config()
        if config is None:
            raise ProtocolError(ProtocolError.NO_CONFIGURATION)

        for attempt in range(1, MAX_STALE_RETRIES + 1):
            session = await self.histories.get_or_create_session(ctx.session_id)
            result = await step(config, session)

            if result["session"] is not session:
                try:
                    await self.histories.save_session(result["session"], expected_version=session.version)
                except StaleSessionError:
                    log.warning("Session changed during turn; re-running.", session_id=ctx.session_id, attempt=attempt)
                    continue

            self._log_turn(ctx, event, result)
            return result["response"]

        raise StaleSessionError(ctx.session_id, session.version)

    def _log_turn(self, ctx: ConnectionContext, event: str, result: EngineResult) -> None:
        session: ChatSession = result["session"]
        log.info(
            "Flow turn committed.",
            session_id=ctx.session_id,
            event=event,
            applied=result["applied"],
            reason=result["reason"],
            path=result["trace"],
            block_id=session.current_block_id,
            frame_type=result["response"].type,
        )
