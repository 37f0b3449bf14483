# /flowbot/config/strings.py

# This file contains all user-facing frame texts, making them easy to manage,
# update, and eventually localize without changing engine logic.

PROMPT_MESSAGE = "Please respond..."

# Error frames
NO_CONFIGURATION = "No chatbot configuration found"
INVALID_FRAME = "Invalid message format. Expected JSON."
UNEXPECTED_INPUT = "Unexpected message received"
INIT_FAILED = "Failed to initialize chatbot flow"
PROCESSING_FAILED = "Failed to process message"
INVALID_SESSION = "Invalid session"

# Maps a ProtocolError reason to the text sent in the error frame.
PROTOCOL_ERROR_MESSAGES = {
    "malformed-frame": INVALID_FRAME,
    "unexpected-input": UNEXPECTED_INPUT,
    "no-configuration": NO_CONFIGURATION,
    "invalid-session": INVALID_SESSION,
}
