# /flowbot/services/config_service.py

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import ValidationError as ModelValidationError

from flowbot.models.flow import FlowConfig
from flowbot.services.db_service import db_service, retry_transient
from flowbot.utils.metrics import database_operations_counter
from flowbot.workflows.errors import ValidationError
from flowbot.workflows.validator import validate_config

# Stores the single active flow configuration. Uploads replace the active
# record in place; the most recently updated record is always the one served.

logger = logging.getLogger(__name__)


class ConfigService:
    def __init__(self, database=None):
        self._database = database or db_service

    @property
    def collection(self):
        return self._database.configs

    @retry_transient
    async def _latest(self) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({}, sort=[("updatedAt", -1)])

    async def save_config(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate and store a configuration as the active one.

        Args:
            config_data: Raw configuration body

        Returns:
            The stored record, including its `id`

        Raises:
            ValidationError: the configuration failed validation; nothing was written
        """
        result = validate_config(config_data)
        if not result["ok"]:
            logger.warning(f"Rejected configuration with {len(result['errors'])} validation errors.")
            raise ValidationError(result["errors"])

        try:
            flow = FlowConfig.model_validate(config_data)
        except ModelValidationError as e:
            errors = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()]
            logger.warning(f"Configuration passed validation but could not be normalized: {errors}")
            raise ValidationError(errors)

        now = datetime.now(timezone.utc)
        document = flow.model_dump(
            mode="json",
            by_alias=True,
            exclude={"id", "created_at", "updated_at"},
            exclude_none=True,
        )
        document["updatedAt"] = now

        existing = await self._latest()
        if existing:
            if config_data.get("metadata") is None and existing.get("metadata"):
                document["metadata"] = existing["metadata"]
            await self._update(existing["_id"], document)
            record_id = existing["_id"]
            document["createdAt"] = existing.get("createdAt", now)
            logger.info(f"Updated active configuration {record_id} ({len(flow.blocks)} blocks).")
        else:
            document["createdAt"] = now
            record_id = await self._insert(document)
            logger.info(f"Created configuration {record_id} ({len(flow.blocks)} blocks).")

        database_operations_counter.labels(operation="save_config", status="success").inc()
        document.pop("_id", None)
        return {**document, "id": str(record_id)}

    @retry_transient
    async def _update(self, record_id, document: Dict[str, Any]) -> None:
        await self.collection.update_one({"_id": record_id}, {"$set": document})

    @retry_transient
    async def _insert(self, document: Dict[str, Any]):
        result = await self.collection.insert_one(dict(document))
        return result.inserted_id

    async def get_config_document(self) -> Optional[Dict[str, Any]]:
        """The active configuration as a JSON-ready record, or None."""
        document = await self._latest()
        if not document:
            return None
        document["id"] = str(document.pop("_id"))
        return document

    async def get_config(self) -> Optional[FlowConfig]:
        """The active configuration, or None when nothing has been uploaded."""
        document = await self.get_config_document()
        if document is None:
            return None
        return FlowConfig.model_validate(document)


# Globally accessible instance
config_service = ConfigService()
