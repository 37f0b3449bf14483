# /flowbot/models/api.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum

from flowbot.config import strings

# This file contains Pydantic models that define the structure of data for
# API requests and responses and for the frames exchanged over the chat socket.


class FrameType(str, Enum):
    MESSAGE = "message"
    PROMPT = "prompt"
    ERROR = "error"


class OutboundFrame(BaseModel):
    """A single frame sent to the chat client; every turn produces exactly one."""
    type: FrameType
    message: str

    model_config = ConfigDict(use_enum_values=True)

    @classmethod
    def text(cls, message: str) -> "OutboundFrame":
        return cls(type=FrameType.MESSAGE, message=message)

    @classmethod
    def prompt(cls, message: str = strings.PROMPT_MESSAGE) -> "OutboundFrame":
        return cls(type=FrameType.PROMPT, message=message)

    @classmethod
    def error(cls, message: str) -> "OutboundFrame":
        return cls(type=FrameType.ERROR, message=message)


class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConfigSavedResponse(BaseModel):
    success: bool = True
    message: str = "Chatbot flow configuration saved successfully"
    id: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None


class SessionPage(BaseModel):
    sessions: List[Dict[str, Any]]
    total_pages: int = Field(..., alias="totalPages")
    current_page: int = Field(..., alias="currentPage")
    total_sessions: int = Field(..., alias="totalSessions")

    model_config = ConfigDict(populate_by_name=True)
