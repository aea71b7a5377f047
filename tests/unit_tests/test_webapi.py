"""Unit tests for the HTTP front-end hosting the controller."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from sinhala_unicode import webapi
from sinhala_unicode.conversion import ConversionController, ConversionTimeoutError
from sinhala_unicode.conversion.adapters import (
    InMemoryTextSurface,
    JsonPreferenceStore,
    SessionClipboard,
)
from tests.unit_tests.fakes import FakeConverter

if TYPE_CHECKING:
    from fastapi.testclient import TestClient


@pytest.fixture
def converter() -> FakeConverter:
    return FakeConverter("මම")


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, converter: FakeConverter
) -> Iterator[TestClient]:
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient

    def build_session() -> webapi.Session:
        clipboard = SessionClipboard()
        controller = ConversionController(
            converter=converter,
            surface=InMemoryTextSurface(),
            clipboard=clipboard,
            preferences=JsonPreferenceStore(str(tmp_path)),
            debounce_delay=0.05,
        )
        return webapi.Session(controller=controller, clipboard=clipboard)

    monkeypatch.setattr(webapi, "build_session", build_session)
    monkeypatch.setattr(webapi, "setup_logging", lambda level: None)
    monkeypatch.setattr(webapi, "SESSIONS", {})
    with TestClient(webapi.app) as test_client:
        yield test_client


def _wait_for_settled(
    client: TestClient, timeout: float = 2.0, headers: dict[str, str] | None = None
) -> dict[str, object]:
    deadline = time.monotonic() + timeout
    state = client.get("/state", headers=headers).json()
    while (state["pending"] or state["is_converting"]) and time.monotonic() < deadline:
        time.sleep(0.02)
        state = client.get("/state", headers=headers).json()
    return state


def test_health(client: TestClient) -> None:
    """Report service health."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_initial_state_is_ready(client: TestClient) -> None:
    """Start idle with auto-convert on and nothing to show."""
    state = client.get("/state").json()

    assert state["status"] == "ready"
    assert state["status_message"] == "Ready"
    assert state["auto_convert"] is True
    assert state["input"] == ""
    assert state["clipboard"] is None


def test_convert_with_text_returns_converted_state(client: TestClient, converter: FakeConverter) -> None:
    """Convert posted text and silently copy the short result."""
    response = client.post("/convert", json={"text": "mama"})

    assert response.status_code == 200
    state = response.json()
    assert state["input"] == "mama"
    assert state["output"] == "මම"
    assert state["status"] == "success"
    assert state["clipboard"] == "මම"
    assert state["is_converting"] is False
    assert converter.calls == ["mama"]


def test_convert_blank_input_is_rejected(client: TestClient, converter: FakeConverter) -> None:
    """Answer 422 with a validation code and do not call the converter."""
    response = client.post("/convert", json={"text": "   "})

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "validation"
    assert converter.calls == []
    notification = client.get("/state").json()["notification"]
    assert notification == {"message": "Please enter some text to convert", "level": "warning"}


def test_input_change_triggers_debounced_conversion(client: TestClient, converter: FakeConverter) -> None:
    """Schedule a conversion on text change and apply its result after the quiet period."""
    response = client.put("/input", json={"text": "mama"})

    assert response.status_code == 202
    assert response.json()["pending"] is True
    state = _wait_for_settled(client)
    assert state["output"] == "මම"
    assert state["status"] == "success"
    assert converter.calls == ["mama"]


def test_disabling_auto_convert_persists_and_stops_scheduling(
    client: TestClient, converter: FakeConverter, tmp_path: Path
) -> None:
    """Save the preference and only record text changes afterwards."""
    response = client.put("/auto-convert", json={"enabled": False})

    assert response.status_code == 200
    assert response.json()["auto_convert"] is False
    assert json.loads((tmp_path / "preferences.json").read_text(encoding="utf-8")) == {"auto_convert": False}

    state = client.put("/input", json={"text": "mama"}).json()
    assert state["pending"] is False
    assert state["status_message"] == "Ready to convert"
    time.sleep(0.1)
    assert converter.calls == []


def test_clear_copy_and_dismiss(client: TestClient) -> None:
    """Clear fields, warn on empty copy and dismiss the notification."""
    client.post("/convert", json={"text": "mama"})

    state = client.post("/clear").json()
    assert state["input"] == ""
    assert state["output"] == ""
    assert state["notification"]["message"] == "Input cleared"

    state = client.post("/copy").json()
    assert state["notification"] == {"message": "No text to copy", "level": "warning"}

    state = client.delete("/notification").json()
    assert state["notification"] is None


def test_timeout_surfaces_error_state(client: TestClient, converter: FakeConverter) -> None:
    """Report a timed-out conversion as an error with an empty output."""
    converter.error = ConversionTimeoutError("Request timed out. Please try again.")

    state = client.post("/convert", json={"text": "mama"}).json()

    assert state["status"] == "error"
    assert state["output"] == ""
    assert "timed out" in state["notification"]["message"]
    assert state["is_converting"] is False


def test_sessions_keep_separate_input_and_output(client: TestClient) -> None:
    """Keep one session's input, output and clipboard away from another session."""
    alice = {"X-Session-Id": "alice"}
    bob = {"X-Session-Id": "bob"}

    client.post("/convert", json={"text": "mama"}, headers=alice)
    state = client.get("/state", headers=bob).json()

    assert state["input"] == ""
    assert state["output"] == ""
    assert state["clipboard"] is None
    assert client.get("/state", headers=alice).json()["output"] == "මම"


def test_in_flight_conversion_does_not_block_other_sessions(
    client: TestClient, converter: FakeConverter
) -> None:
    """Let another session convert while the first session's request is still running."""
    gate = threading.Event()
    converter.gate = gate
    converter.block_text = "mama"
    alice = {"X-Session-Id": "alice"}
    bob = {"X-Session-Id": "bob"}

    client.put("/input", json={"text": "mama"}, headers=alice)
    deadline = time.monotonic() + 2.0
    while converter.calls != ["mama"] and time.monotonic() < deadline:
        time.sleep(0.02)
    assert client.get("/state", headers=alice).json()["is_converting"] is True

    state = client.post("/convert", json={"text": "amma"}, headers=bob).json()
    gate.set()

    assert state["output"] == "මම"
    assert state["status"] == "success"
    assert converter.calls == ["mama", "amma"]
    assert _wait_for_settled(client, headers=alice)["output"] == "මම"


def test_malformed_session_id_is_rejected(client: TestClient) -> None:
    """Answer 400 for session ids outside the allowed alphabet."""
    response = client.get("/state", headers={"X-Session-Id": "../etc"})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "bad_session"


def test_idle_sessions_are_evicted(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    """Stop and drop sessions that have been idle longer than the idle limit."""
    client.post("/convert", json={"text": "mama"}, headers={"X-Session-Id": "alice"})
    assert "alice" in webapi.SESSIONS

    monkeypatch.setattr(webapi, "SESSION_IDLE_SEC", 0.0)
    time.sleep(0.01)
    client.get("/state", headers={"X-Session-Id": "bob"})

    assert "alice" not in webapi.SESSIONS
    assert "bob" in webapi.SESSIONS
