# /flowbot/models/session.py

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field

from flowbot.models.flow import FlowConfig, SUSPEND_KINDS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class TranscriptEntry(BaseModel):
    """A single message exchanged in a session, tagged with the block that produced or consumed it."""
    direction: MessageDirection
    content: Any = Field(..., description="Raw text, or the structured inbound frame when it has no text")
    timestamp: datetime = Field(default_factory=utc_now)
    block_id: Optional[str] = Field(default=None, alias="blockId")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class ChatSession(BaseModel):
    """
    One user's conversation: current position in the flow graph plus the
    append-only transcript.

    Whether the session is awaiting input is derived from the kind of the
    current block, never stored.
    """
    session_id: str = Field(..., alias="sessionId", min_length=1)
    started_at: datetime = Field(default_factory=utc_now, alias="startedAt")
    last_activity: datetime = Field(default_factory=utc_now, alias="lastActivity")
    current_block_id: Optional[str] = Field(default=None, alias="currentBlockId")
    messages: List[TranscriptEntry] = Field(default_factory=list)
    version: int = Field(default=0, description="Incremented on every committed step")

    model_config = ConfigDict(populate_by_name=True)

    def touch(self) -> None:
        self.last_activity = utc_now()

    def move_to(self, block_id: str) -> None:
        self.current_block_id = block_id
        self.touch()

    def record(self, direction: MessageDirection, content: Any, block_id: Optional[str] = None) -> TranscriptEntry:
        entry = TranscriptEntry(direction=direction, content=content, block_id=block_id)
        self.messages.append(entry)
        self.touch()
        return entry

    def is_awaiting_input(self, config: FlowConfig) -> bool:
        block = config.get_block(self.current_block_id)
        return block is not None and block.type in SUSPEND_KINDS

    def to_document(self) -> Dict[str, Any]:
        """Full replacement document persisted by the session store."""
        return self.model_dump(by_alias=True)
