# tests/integration/test_websocket.py
import pytest

from flowbot.config import strings
from flowbot.services.gateway_service import SessionGateway


@pytest.fixture
def chat_gateway(mocker, config_store, history_store, classifier):
    gateway = SessionGateway(configs=config_store, histories=history_store, classifier=classifier)
    mocker.patch("flowbot.routes.chat.gateway", gateway)
    return gateway


def test_conversation_over_socket(test_client, chat_gateway, history_store):
    with test_client.websocket_connect("/ws?session_id=web-1") as ws:
        assert ws.receive_json() == {"type": "message", "message": "Hi! How can I help?"}

        ws.send_json({"text": "I need help, it is broken"})
        assert ws.receive_json() == {"type": "message", "message": "Support here."}

        ws.send_json({"text": "anyone there?"})
        assert ws.receive_json() == {"type": "error", "message": strings.UNEXPECTED_INPUT}

    assert history_store.documents["web-1"]["currentBlockId"] == "support"


def test_malformed_frame_gets_error(test_client, chat_gateway):
    with test_client.websocket_connect("/ws") as ws:
        ws.receive_json()

        ws.send_text("this is not json")
        assert ws.receive_json() == {"type": "error", "message": strings.INVALID_FRAME}

        ws.send_json({"text": "my bill"})
        assert ws.receive_json()["message"] == "Billing team here."


def test_frames_never_echo_session_id(test_client, chat_gateway):
    with test_client.websocket_connect("/ws?session_id=web-2") as ws:
        frame = ws.receive_json()

    assert set(frame) == {"type", "message"}


def test_reconnect_resumes_waiting_session(test_client, chat_gateway, history_store):
    with test_client.websocket_connect("/ws?session_id=web-3") as ws:
        ws.receive_json()
        ws.send_json({"text": "my invoice"})
        assert ws.receive_json()["message"] == "Billing team here."

    with test_client.websocket_connect("/ws?session_id=web-3") as ws:
        assert ws.receive_json() == {"type": "prompt", "message": strings.PROMPT_MESSAGE}
        ws.send_json({"text": "thanks"})
        assert ws.receive_json() == {"type": "message", "message": "Bye!"}


def test_no_configuration(test_client, mocker, empty_config_store, history_store, classifier):
    gateway = SessionGateway(configs=empty_config_store, histories=history_store, classifier=classifier)
    mocker.patch("flowbot.routes.chat.gateway", gateway)

    with test_client.websocket_connect("/ws") as ws:
        assert ws.receive_json() == {"type": "error", "message": strings.NO_CONFIGURATION}
