# /flowbot/services/history_service.py

import logging
import math
from typing import Any, Dict, Optional

from flowbot.models.session import ChatSession
from flowbot.services.db_service import db_service, retry_transient
from flowbot.utils.metrics import database_operations_counter
from flowbot.workflows.errors import StaleSessionError

# Durable store for chat sessions: the position of each conversation in the
# flow graph and its full transcript. Sessions are written as whole documents
# so one engine step is committed atomically.

logger = logging.getLogger(__name__)

PAGINATION_DEFAULT_LIMIT = 10
PAGINATION_MAX_LIMIT = 100


class HistoryService:
    def __init__(self, database=None):
        self._database = database or db_service

    @property
    def collection(self):
        return self._database.sessions

    @retry_transient
    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        document = await self.collection.find_one({"sessionId": session_id}, {"_id": 0})
        if not document:
            return None
        return ChatSession.model_validate(document)

    @retry_transient
    async def get_or_create_session(self, session_id: str) -> ChatSession:
        """Fetch a session, creating an empty one on first contact."""
        fresh = ChatSession(session_id=session_id)
        result = await self.collection.update_one(
            {"sessionId": session_id},
            {"$setOnInsert": fresh.to_document()},
            upsert=True,
        )
        if result.upserted_id is not None:
            logger.info(f"Created session {session_id}.")
            database_operations_counter.labels(operation="create_session", status="success").inc()
            return fresh

        document = await self.collection.find_one({"sessionId": session_id}, {"_id": 0})
        return ChatSession.model_validate(document)

    @retry_transient
    async def save_session(self, session: ChatSession, expected_version: int) -> ChatSession:
        """
        Persist the full replacement of a session document.

        The write only applies if the stored document is still at
        `expected_version`, so two steps that started from the same state can
        never both be committed.

        Raises:
            StaleSessionError: another step committed first
        """
        committed = session.model_copy(update={"version": expected_version + 1})
        version_filter: Dict[str, Any] = {"version": expected_version}
        if expected_version == 0:
            version_filter = {"$or": [{"version": 0}, {"version": {"$exists": False}}]}

        result = await self.collection.replace_one(
            {"sessionId": session.session_id, **version_filter},
            committed.to_document(),
        )
        if result.matched_count == 0:
            database_operations_counter.labels(operation="save_session", status="conflict").inc()
            raise StaleSessionError(session.session_id, expected_version)

        database_operations_counter.labels(operation="save_session", status="success").inc()
        return committed

    async def list_sessions(self, page: int = 1, limit: int = PAGINATION_DEFAULT_LIMIT) -> Dict[str, Any]:
        """
        Get sessions ordered by most recent activity.

        Returns:
            Dict with sessions, totalPages, currentPage and totalSessions
        """
        page = max(page, 1)
        limit = min(max(limit, 1), PAGINATION_MAX_LIMIT)

        cursor = (
            self.collection.find({}, {"_id": 0})
            .sort("lastActivity", -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        sessions = await cursor.to_list(length=limit)
        total = await self.collection.count_documents({})

        return {
            "sessions": sessions,
            "totalPages": math.ceil(total / limit),
            "currentPage": page,
            "totalSessions": total,
        }


# Globally accessible instance
history_service = HistoryService()
