import asyncio
import copy
import os
import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Load environment variables FIRST, before any flowbot imports, so that the
# settings object can find MONGO_URI and friends.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env.test"))

from flowbot.main import app  # noqa: E402
from flowbot.models.flow import FlowConfig  # noqa: E402
from flowbot.models.session import ChatSession  # noqa: E402
from flowbot.services.intent_service import IntentResult  # noqa: E402
from flowbot.workflows.errors import StaleSessionError  # noqa: E402


SAMPLE_CONFIG = {
    "initialBlock": "welcome",
    "metadata": {"version": "1.0", "description": "Support desk"},
    "blocks": [
        {"id": "welcome", "type": "message", "message": "Hi! How can I help?", "next": "ask"},
        {
            "id": "ask",
            "type": "detect_intent",
            "intents": [
                {"intent": "billing", "keywords": ["bill", "invoice"], "next": "billing"},
                {"intent": "support", "keywords": ["help", "broken"], "next": "support"},
            ],
            "fallback": "fallback",
        },
        {"id": "billing", "type": "message", "message": "Billing team here.", "next": "pause"},
        {"id": "support", "type": "message", "message": "Support here."},
        {"id": "fallback", "type": "message", "message": "Sorry, I did not get that.", "next": "ask"},
        {"id": "pause", "type": "wait", "next": "goodbye"},
        {"id": "goodbye", "type": "message", "message": "Bye!"},
    ],
}


class MemoryConfigStore:
    """In-memory stand-in for ConfigService."""

    def __init__(self, raw=None):
        self.raw = copy.deepcopy(raw)

    async def get_config(self):
        if self.raw is None:
            return None
        return FlowConfig.model_validate(self.raw)


class MemoryHistoryStore:
    """In-memory stand-in for HistoryService with the same version check."""

    def __init__(self):
        self.documents = {}
        self.saves = 0

    async def get_session(self, session_id):
        document = self.documents.get(session_id)
        return ChatSession.model_validate(document) if document else None

    async def get_or_create_session(self, session_id):
        if session_id not in self.documents:
            self.documents[session_id] = ChatSession(session_id=session_id).to_document()
        return ChatSession.model_validate(copy.deepcopy(self.documents[session_id]))

    async def save_session(self, session, expected_version):
        stored = self.documents.get(session.session_id)
        if stored is None or stored["version"] != expected_version:
            raise StaleSessionError(session.session_id, expected_version)
        committed = session.model_copy(update={"version": expected_version + 1})
        self.documents[session.session_id] = committed.to_document()
        self.saves += 1
        return committed


class KeywordClassifier:
    """Deterministic classifier: substring match on the offered keywords."""

    def __init__(self, delay=0.0, fail=False):
        self.delay = delay
        self.fail = fail
        self.calls = []

    async def classify(self, text, options, timeout=None):
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            return IntentResult.no_match("error", "test")
        lowered = text.lower()
        for option in options:
            if any(keyword in lowered for keyword in option["keywords"]):
                return IntentResult.match(option["label"], "test")
        return IntentResult.no_match("no-match", "test")


@pytest.fixture
def sample_config():
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def flow_config(sample_config):
    return FlowConfig.model_validate(sample_config)


@pytest.fixture
def classifier():
    return KeywordClassifier()


@pytest.fixture
def make_classifier():
    return KeywordClassifier


@pytest.fixture
def config_store(sample_config):
    return MemoryConfigStore(sample_config)


@pytest.fixture
def empty_config_store():
    return MemoryConfigStore(None)


@pytest.fixture
def history_store():
    return MemoryHistoryStore()


@pytest.fixture(scope="function")
def test_client(mocker):
    """
    Provides a TestClient for API integration tests.
    Index creation is mocked so the app can start without a database.
    """
    mocker.patch("flowbot.services.db_service.DatabaseService.create_indexes", new_callable=AsyncMock)

    # The app's lifespan (startup/shutdown events) is managed by the TestClient
    with TestClient(app) as client:
        yield client
