# tests/unit/test_validator.py
import pytest

from flowbot.workflows.validator import validate_config


def test_valid_config_has_no_errors(sample_config):
    result = validate_config(sample_config)
    assert result == {"ok": True, "errors": []}


@pytest.mark.parametrize("config", [None, [], "config", 42])
def test_non_object_is_rejected(config):
    result = validate_config(config)
    assert result["ok"] is False
    assert result["errors"] == ["Configuration must be an object"]


@pytest.mark.parametrize("blocks", [None, [], {"id": "a"}])
def test_missing_or_empty_blocks_stops_validation(blocks):
    config = {"initialBlock": "missing", "blocks": blocks}
    if blocks is None:
        del config["blocks"]

    result = validate_config(config)

    assert result["ok"] is False
    assert result["errors"] == ["Configuration must contain a non-empty blocks array"]


def test_initial_block_must_be_present_and_exist(sample_config):
    del sample_config["initialBlock"]
    assert "Configuration must specify an initialBlock" in validate_config(sample_config)["errors"]

    sample_config["initialBlock"] = "nowhere"
    assert "Initial block with ID nowhere not found in blocks array" in validate_config(sample_config)["errors"]


def test_every_duplicate_occurrence_is_reported():
    config = {
        "initialBlock": "a",
        "blocks": [
            {"id": "a", "type": "message", "message": "one"},
            {"id": "a", "type": "message", "message": "two"},
            {"id": "b", "type": "message", "message": "three"},
        ],
    }

    errors = validate_config(config)["errors"]

    assert "Duplicate block ID: a (block at index 0)" in errors
    assert "Duplicate block ID: a (block at index 1)" in errors
    assert not any("Duplicate block ID: b" in error for error in errors)


def test_block_without_id_is_reported_by_index():
    config = {
        "initialBlock": "a",
        "blocks": [
            {"id": "a", "type": "message", "message": "hello"},
            {"type": "message", "message": "anonymous"},
        ],
    }
    assert validate_config(config)["errors"] == ["Block at index 1 must have an ID"]


def test_unsupported_type_is_named():
    config = {"initialBlock": "a", "blocks": [{"id": "a", "type": "carousel"}]}

    errors = validate_config(config)["errors"]

    assert errors == [
        "Block a has unsupported block type: carousel. Supported types are: message, wait, detect_intent"
    ]


def test_per_type_required_fields():
    config = {
        "initialBlock": "m",
        "blocks": [
            {"id": "m", "type": "message"},
            {"id": "w", "type": "wait"},
            {"id": "d", "type": "detect_intent", "intents": []},
            {"id": "t"},
        ],
    }

    errors = validate_config(config)["errors"]

    assert "Block m of type message must have a message property" in errors
    assert "Block w of type wait must have a next property" in errors
    assert "Block d of type detect_intent must have a non-empty intents array" in errors
    assert "Block d of type detect_intent must have a fallback property" in errors
    assert "Block t must have a type" in errors


def test_intent_entries_are_checked_individually():
    config = {
        "initialBlock": "d",
        "blocks": [
            {
                "id": "d",
                "type": "detect_intent",
                "intents": [
                    {"intent": "yes", "keywords": [], "next": "d"},
                    {"keywords": ["no"]},
                ],
                "fallback": "d",
            }
        ],
    }

    errors = validate_config(config)["errors"]

    assert "Intent yes in block d must have a non-empty keywords array" in errors
    assert "Intent at position 1 in block d must have an intent property" in errors
    assert "Intent at position 1 in block d must have a next property" in errors


def test_dangling_references_name_their_source():
    config = {
        "initialBlock": "start",
        "blocks": [
            {"id": "start", "type": "message", "message": "hi", "next": "ghost"},
            {"id": "pause", "type": "wait", "next": "start"},
            {
                "id": "route",
                "type": "detect_intent",
                "intents": [{"intent": "buy", "keywords": ["buy"], "next": "shop"}],
                "fallback": "void",
            },
        ],
    }

    errors = validate_config(config)["errors"]

    assert errors == [
        "Block start references non-existent next block: ghost",
        "Block route references non-existent fallback block: void",
        "Intent buy in block route references non-existent next block: shop",
    ]


def test_all_errors_are_collected_in_one_pass():
    config = {
        "initialBlock": "missing",
        "metadata": "not-an-object",
        "blocks": [
            {"id": "a", "type": "wait"},
            {"id": "b", "type": "message", "message": "hi", "next": "zzz"},
        ],
    }

    errors = validate_config(config)["errors"]

    assert len(errors) == 4
    assert "Configuration metadata must be an object" in errors


def test_garbage_blocks_never_raise():
    result = validate_config({"initialBlock": "a", "blocks": [None, 5, "text", {"id": 7}]})

    assert result["ok"] is False
    assert "Block at index 0 must be an object" in result["errors"]
    assert "Block at index 3 must have an ID" in result["errors"]
