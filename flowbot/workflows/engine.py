# /flowbot/workflows/engine.py

"""
Flow execution engine.

This module advances a chat session through the block graph of a flow
configuration:
- Message blocks are emitted and chained until a suspend point is reached
- Wait blocks suspend until any user input arrives
- DetectIntent blocks suspend, then route the next input by classified intent
- A classifier failure or no-match always routes to the block's fallback

All functions are:
- Stateless between calls (the session snapshot is copied, never mutated)
- Free of persistence, transport and logging concerns
- One response per turn: only the last message of a chain is returned,
  though every chained message is recorded in the transcript

The caller persists the returned session before delivering the response.
"""

import json
from typing import Any, List, Optional, Protocol, Sequence, Tuple, TypedDict

from flowbot.config import strings
from flowbot.config.settings import settings
from flowbot.models.api import OutboundFrame
from flowbot.models.flow import (
    Block,
    DetectIntentBlock,
    FlowConfig,
    MessageBlock,
    SUSPEND_KINDS,
    WaitBlock,
)
from flowbot.models.session import ChatSession, MessageDirection
from flowbot.workflows.errors import ConfigError, FlowError, ProtocolError


class IntentClassifier(Protocol):
    async def classify(self, text: str, options: Sequence[dict], timeout: Optional[float] = None) -> Any:
        ...


class EngineResult(TypedDict):
    """Result of one engine turn."""
    applied: bool
    reason: Optional[str]
    session: ChatSession
    response: OutboundFrame
    trace: List[str]


def chain_limit(config: FlowConfig) -> int:
    """Maximum number of blocks one turn may visit."""
    return settings.max_chain_steps or len(config.blocks) + 1


def inbound_content(payload: Any) -> Tuple[Any, str]:
    """
    Split an inbound frame into what is stored in the transcript and the
    text handed to the classifier.

    Frames carrying a string `text` store that text; anything else is stored
    in its structured form and classified as its JSON encoding.
    """
    if isinstance(payload, dict) and isinstance(payload.get("text"), str):
        return payload["text"], payload["text"]
    if isinstance(payload, str):
        return payload, payload
    return payload, json.dumps(payload, default=str)


def _resolve(config: FlowConfig, block_id: Optional[str], source_id: str) -> Block:
    if not block_id:
        raise FlowError(f"Block {source_id} does not have a next block defined", source_id)
    block = config.get_block(block_id)
    if block is None:
        raise ConfigError(f"Next block with ID {block_id} not found", source_id)
    return block


async def advance(
    block: Block,
    config: FlowConfig,
    session: ChatSession,
    classifier: IntentClassifier,
    inbound_text: Optional[str] = None,
    trace: Optional[List[str]] = None,
) -> OutboundFrame:
    """
    Run the chaining algorithm from `block`, mutating `session` in place.

    Args:
        block: The block to process
        config: Active flow configuration
        session: Working copy of the session
        classifier: Intent classifier used by detect_intent blocks
        inbound_text: The user message that is available to this block, if any
        trace: Optional list collecting the ids of visited blocks

    Returns:
        The single frame for this turn
    """
    limit = chain_limit(config)
    emitted = set()
    steps = 0

    while True:
        steps += 1
        if steps > limit:
            raise FlowError(f"Flow exceeded {limit} chained blocks without reaching a stop", block.id)
        if trace is not None:
            trace.append(block.id)

        if isinstance(block, MessageBlock):
            if block.id in emitted:
                raise FlowError(f"Message chain cycles back to block {block.id}", block.id)
            emitted.add(block.id)
            session.record(MessageDirection.OUTGOING, block.text, block.id)

            if block.next is None:
                return OutboundFrame.text(block.text)

            next_block = _resolve(config, block.next, block.id)
            session.move_to(next_block.id)

            # Stop before a suspend point so the user sees this message before being asked.
            if next_block.type in SUSPEND_KINDS:
                return OutboundFrame.text(block.text)

            block, inbound_text = next_block, None
            continue

        if isinstance(block, WaitBlock):
            session.move_to(block.id)
            return OutboundFrame.prompt()

        if isinstance(block, DetectIntentBlock):
            if inbound_text is None:
                session.move_to(block.id)
                return OutboundFrame.prompt()

            result = await classifier.classify(inbound_text, block.intent_options())
            target_id = block.route_for(getattr(result, "label", None))
            next_block = config.get_block(target_id)
            if next_block is None:
                raise FlowError(f"Intent route from block {block.id} points at missing block {target_id}", block.id)

            session.move_to(next_block.id)
            block, inbound_text = next_block, None
            continue

        raise FlowError(f"Unsupported block type: {getattr(block, 'type', None)}", getattr(block, "id", None))


async def start_flow(config: FlowConfig, session: ChatSession, classifier: IntentClassifier) -> EngineResult:
    """
    Begin the flow at the configuration's initial block.

    Raises:
        ConfigError: the initial block does not exist
        FlowError: the graph cannot be traversed
    """
    initial = config.get_block(config.initial_block)
    if initial is None:
        raise ConfigError(f"Initial block with ID {config.initial_block} not found", config.initial_block)

    working = session.model_copy(deep=True)
    working.move_to(initial.id)
    trace: List[str] = []
    response = await advance(initial, config, working, classifier, trace=trace)

    return {
        "applied": True,
        "reason": None,
        "session": working,
        "response": response,
        "trace": trace,
    }


async def receive_message(
    config: FlowConfig,
    session: ChatSession,
    payload: Any,
    classifier: IntentClassifier,
) -> EngineResult:
    """
    Feed one user message into the flow.

    The message is always appended to the transcript. If the session is not
    resting on a wait or detect_intent block, the result is not applied:
    the position is unchanged and an unexpected-input error frame is returned.
    """
    working = session.model_copy(deep=True)
    content, text = inbound_content(payload)
    current = config.get_block(working.current_block_id)
    working.record(MessageDirection.INCOMING, content, working.current_block_id)
    trace: List[str] = []

    if isinstance(current, WaitBlock):
        # The wait block itself ignores the text; a detect_intent right behind it classifies this same message.
        next_block = _resolve(config, current.next, current.id)
        working.move_to(next_block.id)
        trace.append(current.id)
        response = await advance(next_block, config, working, classifier, inbound_text=text, trace=trace)
    elif isinstance(current, DetectIntentBlock):
        response = await advance(current, config, working, classifier, inbound_text=text, trace=trace)
    else:
        return {
            "applied": False,
            "reason": ProtocolError.UNEXPECTED_INPUT,
            "session": working,
            "response": OutboundFrame.error(strings.UNEXPECTED_INPUT),
            "trace": trace,
        }

    return {
        "applied": True,
        "reason": None,
        "session": working,
        "response": response,
        "trace": trace,
    }
