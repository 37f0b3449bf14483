# /flowbot/models/flow.py

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class BlockKind(str, Enum):
    """Closed set of block kinds a flow configuration may contain."""
    MESSAGE = "message"
    WAIT = "wait"
    DETECT_INTENT = "detect_intent"


SUSPEND_KINDS = frozenset({BlockKind.WAIT.value, BlockKind.DETECT_INTENT.value})


class IntentOption(BaseModel):
    """One labeled branch of a detect_intent block."""
    label: str = Field(..., alias="intent", min_length=1, description="Intent label returned by the classifier")
    keywords: List[str] = Field(..., min_length=1, description="Hint keywords for the classifier")
    next: str = Field(..., min_length=1, description="Block reached when this intent matches")

    model_config = ConfigDict(populate_by_name=True)


class MessageBlock(BaseModel):
    """Sends its text to the user, then optionally chains to `next`."""
    type: Literal["message"] = "message"
    id: str = Field(..., min_length=1)
    text: str = Field(..., alias="message", min_length=1)
    next: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class WaitBlock(BaseModel):
    """Pure suspend point: waits for any user input, then moves to `next`."""
    type: Literal["wait"] = "wait"
    id: str = Field(..., min_length=1)
    next: str = Field(..., min_length=1)


class DetectIntentBlock(BaseModel):
    """Suspends for user input and routes it by classified intent."""
    type: Literal["detect_intent"] = "detect_intent"
    id: str = Field(..., min_length=1)
    intents: List[IntentOption] = Field(..., min_length=1)
    fallback: str = Field(..., min_length=1)

    def intent_options(self) -> List[Dict[str, object]]:
        """The `{label, keywords}` pairs handed to the intent classifier."""
        return [{"label": option.label, "keywords": list(option.keywords)} for option in self.intents]

    def route_for(self, label: Optional[str]) -> str:
        """Next block id for a classified label, or the fallback when nothing matches."""
        for option in self.intents:
            if label is not None and option.label == label:
                return option.next
        return self.fallback


Block = Annotated[Union[MessageBlock, WaitBlock, DetectIntentBlock], Field(discriminator="type")]


class ConfigMetadata(BaseModel):
    """Free-form descriptive data attached to a configuration; numeric values are stored as strings."""
    version: Optional[str] = "1.0"
    description: Optional[str] = ""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class FlowConfig(BaseModel):
    """
    A complete flow graph plus its designated initial block.

    Instances are built from configurations that already passed
    `validate_config`, so block ids are unique and every link resolves.
    """
    id: Optional[str] = None
    blocks: List[Block] = Field(..., min_length=1)
    initial_block: str = Field(..., alias="initialBlock")
    metadata: ConfigMetadata = Field(default_factory=ConfigMetadata)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    _index: Dict[str, Block] = PrivateAttr(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    def model_post_init(self, __context) -> None:
        self._index = {block.id: block for block in self.blocks}

    @property
    def block_ids(self) -> frozenset:
        return frozenset(self._index)

    def get_block(self, block_id: Optional[str]) -> Optional[Block]:
        if block_id is None:
            return None
        return self._index.get(block_id)

    def to_document(self) -> Dict[str, object]:
        """JSON-ready shape used by the admin API and storage layer."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
