# /flowbot/workflows/errors.py

"""
Error taxonomy for configuration handling and flow execution.

- ValidationError: configuration rejected before it is stored.
- ConfigError / FlowError: the graph cannot be traversed at runtime; the
  current turn is aborted and nothing from it is persisted.
- ClassificationFailure: provider error or timeout, always absorbed by the
  intent service and turned into a fallback route.
- ProtocolError: bad inbound frame or input the flow is not waiting for.
"""

from typing import List, Optional


class FlowBotError(Exception):
    """Base class for all flowbot errors."""


class ValidationError(FlowBotError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid configuration: {', '.join(self.errors)}")


class ConfigError(FlowBotError):
    def __init__(self, message: str, block_id: Optional[str] = None):
        self.block_id = block_id
        super().__init__(message)


class FlowError(FlowBotError):
    def __init__(self, message: str, block_id: Optional[str] = None):
        self.block_id = block_id
        super().__init__(message)


class ClassificationFailure(FlowBotError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StaleSessionError(FlowBotError):
    """The stored session changed after it was read; the step must be re-run."""

    def __init__(self, session_id: str, expected_version: int):
        self.session_id = session_id
        self.expected_version = expected_version
        super().__init__(f"Session {session_id} is no longer at version {expected_version}")


class ProtocolError(FlowBotError):
    MALFORMED_FRAME = "malformed-frame"
    UNEXPECTED_INPUT = "unexpected-input"
    NO_CONFIGURATION = "no-configuration"
    INVALID_SESSION = "invalid-session"

    def __init__(self, reason: str, detail: Optional[str] = None):
        self.reason = reason
        super().__init__(detail or reason)
