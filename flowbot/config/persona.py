# /flowbot/config/persona.py

# This file defines the instructions given to the AI models that classify
# user messages into the intents of a detect_intent block.

INTENT_SYSTEM_PROMPT = (
    "You are an intent detection assistant. Your task is to determine which "
    "predefined intent best matches a user message."
)

INTENT_PROMPT_TEMPLATE = """Given the following user message: "{message}"

Please determine which of the following intents best matches the user's message:
{intent_lines}

Respond with ONLY the exact name of the matching intent from the list above.
If none of the intents match, respond with "{no_match}"."""

INTENT_LINE_TEMPLATE = "{index}. {label} (keywords: {keywords})"
