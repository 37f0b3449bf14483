# /flowbot/workflows/validator.py

"""
Pure validation of flow configurations.

This module checks the structural and referential integrity of a raw
configuration (the JSON body an administrator uploads) before it is
accepted as the active flow.

All functions are:
- Pure (no side effects)
- Deterministic (same input = same output)
- Exhaustive (every discoverable error is reported, not just the first)
- Never raising, whatever the shape of the input
"""

from collections import Counter
from typing import Any, Dict, List, Optional, TypedDict

from flowbot.models.flow import BlockKind

SUPPORTED_TYPES = ", ".join(kind.value for kind in BlockKind)


class ValidationResult(TypedDict):
    """Result of validating a configuration."""
    ok: bool
    errors: List[str]


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _block_label(block: Dict[str, Any], index: int) -> str:
    block_id = block.get("id")
    return block_id if _is_non_empty_str(block_id) else f"at index {index}"


def _message_text(block: Dict[str, Any]) -> Any:
    return block["message"] if "message" in block else block.get("text")


def _intent_label(intent: Dict[str, Any]) -> Any:
    return intent["intent"] if "intent" in intent else intent.get("label")


def _validate_intents(block_id: str, intents: Any) -> List[str]:
    errors: List[str] = []
    if not isinstance(intents, list) or len(intents) == 0:
        return [f"Block {block_id} of type detect_intent must have a non-empty intents array"]

    for position, intent in enumerate(intents):
        if not isinstance(intent, dict):
            errors.append(f"Intent at position {position} in block {block_id} must be an object")
            continue

        label = _intent_label(intent)
        name = label if _is_non_empty_str(label) else f"at position {position}"
        if not _is_non_empty_str(label):
            errors.append(f"Intent {name} in block {block_id} must have an intent property")

        keywords = intent.get("keywords")
        if (
            not isinstance(keywords, list)
            or len(keywords) == 0
            or not all(_is_non_empty_str(keyword) for keyword in keywords)
        ):
            errors.append(f"Intent {name} in block {block_id} must have a non-empty keywords array")

        if not _is_non_empty_str(intent.get("next")):
            errors.append(f"Intent {name} in block {block_id} must have a next property")

    return errors


def _validate_block_fields(block_id: str, block: Dict[str, Any]) -> List[str]:
    """Per-kind required fields for a block whose id is known."""
    block_type = block.get("type")
    if block_type is None or block_type == "":
        return [f"Block {block_id} must have a type"]

    if block_type == BlockKind.MESSAGE.value:
        errors = []
        if not _is_non_empty_str(_message_text(block)):
            errors.append(f"Block {block_id} of type message must have a message property")
        if block.get("next") is not None and not _is_non_empty_str(block.get("next")):
            errors.append(f"Block {block_id} of type message has an invalid next property")
        return errors

    if block_type == BlockKind.WAIT.value:
        if not _is_non_empty_str(block.get("next")):
            return [f"Block {block_id} of type wait must have a next property"]
        return []

    if block_type == BlockKind.DETECT_INTENT.value:
        errors = _validate_intents(block_id, block.get("intents"))
        if not _is_non_empty_str(block.get("fallback")):
            errors.append(f"Block {block_id} of type detect_intent must have a fallback property")
        return errors

    return [f"Block {block_id} has unsupported block type: {block_type}. Supported types are: {SUPPORTED_TYPES}"]


def _reference_errors(block_id: str, block: Dict[str, Any], known_ids: set) -> List[str]:
    errors: List[str] = []

    next_id = block.get("next")
    if _is_non_empty_str(next_id) and next_id not in known_ids:
        errors.append(f"Block {block_id} references non-existent next block: {next_id}")

    fallback = block.get("fallback")
    if _is_non_empty_str(fallback) and fallback not in known_ids:
        errors.append(f"Block {block_id} references non-existent fallback block: {fallback}")

    intents = block.get("intents")
    if isinstance(intents, list):
        for position, intent in enumerate(intents):
            if not isinstance(intent, dict):
                continue
            target = intent.get("next")
            if _is_non_empty_str(target) and target not in known_ids:
                label = _intent_label(intent)
                name = label if _is_non_empty_str(label) else f"at position {position}"
                errors.append(f"Intent {name} in block {block_id} references non-existent next block: {target}")

    return errors


def validate_config(config: Any) -> ValidationResult:
    """
    Validate a raw flow configuration.

    Checks, in order:
    1. The input is an object.
    2. `blocks` is a non-empty array (the only check that stops validation).
    3. `initialBlock` is present and names a block.
    4. Every block has an id, a unique id, a supported type and the fields its type requires.
    5. Every next / fallback / intent next reference resolves to a block id.

    Args:
        config: The decoded JSON body

    Returns:
        ValidationResult with ok=True and no errors if the configuration is usable
    """
    errors: List[str] = []

    if not isinstance(config, dict):
        return {"ok": False, "errors": ["Configuration must be an object"]}

    blocks = config.get("blocks")
    if not isinstance(blocks, list) or len(blocks) == 0:
        return {"ok": False, "errors": ["Configuration must contain a non-empty blocks array"]}

    id_counts: Counter = Counter(
        block.get("id") for block in blocks
        if isinstance(block, dict) and _is_non_empty_str(block.get("id"))
    )
    known_ids = set(id_counts)

    initial_block: Optional[Any] = config.get("initialBlock")
    if not _is_non_empty_str(initial_block):
        errors.append("Configuration must specify an initialBlock")
    elif initial_block not in known_ids:
        errors.append(f"Initial block with ID {initial_block} not found in blocks array")

    if config.get("metadata") is not None and not isinstance(config.get("metadata"), dict):
        errors.append("Configuration metadata must be an object")

    for index, block in enumerate(blocks):
        if not isinstance(block, dict):
            errors.append(f"Block at index {index} must be an object")
            continue

        block_id = block.get("id")
        if not _is_non_empty_str(block_id):
            errors.append(f"Block at index {index} must have an ID")
            continue

        if id_counts[block_id] > 1:
            errors.append(f"Duplicate block ID: {block_id} (block at index {index})")

        errors.extend(_validate_block_fields(block_id, block))

    for index, block in enumerate(blocks):
        if isinstance(block, dict):
            errors.extend(_reference_errors(_block_label(block, index), block, known_ids))

    return {"ok": len(errors) == 0, "errors": errors}
