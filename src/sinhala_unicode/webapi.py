import logging
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path

from fastapi import Body, FastAPI, Header, HTTPException, status
from pydantic import BaseModel

from sinhala_unicode import __version__
from sinhala_unicode.conversion import ConversionController, ConversionFailure, ValidationError
from sinhala_unicode.conversion.adapters import (
    DEFAULT_API_URL,
    EasySinhalaUnicodeConverter,
    InMemoryTextSurface,
    JsonPreferenceStore,
    SessionClipboard,
)
from sinhala_unicode.logging_config import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Sinhala Unicode Converter",
    version=os.getenv("SINHALA_UNICODE_VERSION", __version__),
    description=(
        "Hosts one debounced, single-flight controller per browser session that "
        "sends romanized text to a remote converter and returns Sinhala Unicode."
    ),
)

# Global configuration defaults
CONVERTER_API_URL = os.getenv("CONVERTER_API_URL", DEFAULT_API_URL)
CONVERTER_TIMEOUT_SEC = float(os.getenv("CONVERTER_TIMEOUT_SEC", "10"))
DEBOUNCE_DELAY_MS = int(os.getenv("DEBOUNCE_DELAY_MS", "500"))
SILENT_COPY_MAX_CHARS = int(os.getenv("SILENT_COPY_MAX_CHARS", "100"))
NOTIFICATION_TTL_SEC = float(os.getenv("NOTIFICATION_TTL_SEC", "4"))
SESSION_IDLE_SEC = float(os.getenv("SESSION_IDLE_SEC", "1800"))
DATA_DIR = Path(os.getenv("DATA_DIR", "./data")).resolve()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEFAULT_SESSION_ID = "default"
_SESSION_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")


@dataclass
class Session:
    controller: ConversionController
    clipboard: SessionClipboard
    last_seen: float = field(default_factory=time.monotonic)


SESSIONS: dict[str, Session] = {}


class TextBody(BaseModel):
    text: str


class ConvertBody(BaseModel):
    text: str | None = None


class AutoConvertBody(BaseModel):
    enabled: bool


def build_session() -> Session:
    clipboard = SessionClipboard()
    controller = ConversionController(
        converter=EasySinhalaUnicodeConverter(CONVERTER_API_URL, timeout=CONVERTER_TIMEOUT_SEC),
        surface=InMemoryTextSurface(),
        clipboard=clipboard,
        preferences=JsonPreferenceStore(str(DATA_DIR)),
        debounce_delay=DEBOUNCE_DELAY_MS / 1000,
        silent_copy_max_chars=SILENT_COPY_MAX_CHARS,
        notification_ttl=NOTIFICATION_TTL_SEC,
    )
    return Session(controller=controller, clipboard=clipboard)


def _validate_session_id(session_id: str | None) -> str:
    if not session_id:
        return DEFAULT_SESSION_ID
    session_id = session_id.strip()
    if not _SESSION_ID_RE.fullmatch(session_id):
        raise HTTPException(status_code=400, detail={"code": "bad_session", "message": "malformed session id"})
    return session_id


async def _evict_idle(now: float) -> None:
    for session_id, session in list(SESSIONS.items()):
        if now - session.last_seen > SESSION_IDLE_SEC and not session.controller.is_converting:
            del SESSIONS[session_id]
            await session.controller.stop()
            logger.info("Evicted idle session %s", session_id)


async def _session(session_id: str | None) -> Session:
    """Return the caller's session, building and starting its controller on first use."""
    key = _validate_session_id(session_id)
    now = time.monotonic()
    await _evict_idle(now)
    session = SESSIONS.get(key)
    if session is None:
        session = build_session()
        SESSIONS[key] = session
        await session.controller.start()
        logger.info("Started session %s (auto-convert=%s)", key, session.controller.auto_convert)
    session.last_seen = now
    return session


def _state(session: Session) -> dict[str, object]:
    state = session.controller.snapshot()
    state["clipboard"] = session.clipboard.text
    return state


@app.on_event("startup")
async def _startup() -> None:
    setup_logging(LOG_LEVEL)
    logger.info("Converter endpoint: %s", CONVERTER_API_URL)


@app.on_event("shutdown")
async def _shutdown() -> None:
    while SESSIONS:
        _, session = SESSIONS.popitem()
        await session.controller.stop()


@app.get("/health")
def health() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/state")
async def get_state(x_session_id: str | None = Header(None)) -> dict[str, object]:
    return _state(await _session(x_session_id))


@app.put("/input", status_code=status.HTTP_202_ACCEPTED)
async def put_input(body: TextBody, x_session_id: str | None = Header(None)) -> dict[str, object]:
    """Record a text-change event; with auto-convert on, a debounced conversion is scheduled."""
    session = await _session(x_session_id)
    session.controller.on_text_changed(body.text)
    return _state(session)


@app.post("/convert")
async def convert(
    body: ConvertBody | None = Body(None), x_session_id: str | None = Header(None)
) -> dict[str, object]:
    """Convert the current input (or ``text``, which replaces it) and wait for the result.

    A request made while this session's previous conversion is in flight is
    dropped and the current state is returned unchanged.
    """
    session = await _session(x_session_id)
    controller = session.controller
    if body is not None and body.text is not None:
        controller.surface.input_text = body.text
    result = await controller.request_conversion()
    if isinstance(result, ConversionFailure) and isinstance(result.error, ValidationError):
        raise HTTPException(
            status_code=422,
            detail={"code": result.error.code, "message": result.reason},
        )
    return _state(session)


@app.put("/auto-convert")
async def put_auto_convert(body: AutoConvertBody, x_session_id: str | None = Header(None)) -> dict[str, object]:
    session = await _session(x_session_id)
    session.controller.set_auto_convert(body.enabled)
    return _state(session)


@app.post("/clear")
async def clear(x_session_id: str | None = Header(None)) -> dict[str, object]:
    session = await _session(x_session_id)
    session.controller.clear_input()
    return _state(session)


@app.post("/copy")
async def copy(x_session_id: str | None = Header(None)) -> dict[str, object]:
    session = await _session(x_session_id)
    session.controller.copy_output()
    return _state(session)


@app.delete("/notification")
async def dismiss_notification(x_session_id: str | None = Header(None)) -> dict[str, object]:
    session = await _session(x_session_id)
    session.controller.hide_notification()
    return _state(session)


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:8080). Set PORT env var to override.
    """
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8080"))
    # Enable reload in dev unless explicitly disabled
    reload = os.getenv("RELOAD", "true").lower() in {"1", "true", "yes", "on"}

    uvicorn.run("sinhala_unicode.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
