import os
import time
import uuid

import requests
import streamlit as st

API_BASE = os.getenv("SINHALA_UNICODE_API_BASE", os.getenv("API_BASE", "http://localhost:8080")).rstrip("/")
POLL_INTERVAL_SEC = float(os.getenv("SINHALA_UNICODE_UI_POLL_INTERVAL", "0.25"))
# Covers the debounce delay plus the converter's 10 s transport timeout
POLL_TIMEOUT_SEC = float(os.getenv("SINHALA_UNICODE_UI_POLL_TIMEOUT", "12"))

TOAST_ICONS = {"success": "✅", "warning": "⚠️", "error": "❌", "info": "ℹ️"}
COUNT_COLORS = {"normal": "gray", "medium": "orange", "high": "red"}
STATUS_COLORS = {"ready": "gray", "converting": "blue", "success": "green", "error": "red"}


def _session_id() -> str:
    if "session_id" not in st.session_state:
        st.session_state["session_id"] = uuid.uuid4().hex
    return str(st.session_state["session_id"])


def _call(method: str, path: str, json_body: dict[str, object] | None = None, timeout: float = 30) -> dict[str, object] | None:
    try:
        resp = requests.request(
            method,
            f"{API_BASE}{path}",
            json=json_body,
            headers={"X-Session-Id": _session_id()},
            timeout=timeout,
        )
    except requests.RequestException as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    if resp.status_code == 422:
        detail = resp.json().get("detail", {})
        message = detail.get("message") if isinstance(detail, dict) else None
        st.session_state["warning"] = message or "Please enter some text to convert"
        return None
    if resp.status_code not in (200, 202):
        st.session_state["error"] = f"API error: {resp.status_code} {resp.text}"
        return None
    st.session_state.pop("error", None)
    return resp.json()


def _remember(state: dict[str, object] | None) -> None:
    if state is not None:
        st.session_state["state"] = state


def _fetch_state() -> dict[str, object] | None:
    return _call("GET", "/state")


def _wait_until_settled(state: dict[str, object]) -> dict[str, object]:
    deadline = time.monotonic() + POLL_TIMEOUT_SEC
    while (state.get("pending") or state.get("is_converting")) and time.monotonic() < deadline:
        time.sleep(POLL_INTERVAL_SEC)
        fresh = _fetch_state()
        if fresh is None:
            break
        state = fresh
    return state


def _load_initial_state() -> None:
    if "state" not in st.session_state:
        state = _fetch_state()
        if state is not None:
            st.session_state["state"] = state
            st.session_state["input_text"] = str(state.get("input", ""))
            st.session_state["auto_convert"] = bool(state.get("auto_convert", True))
    # Matches the server-side default when the API is unreachable
    st.session_state.setdefault("auto_convert", True)


def _on_input_changed() -> None:
    _remember(_call("PUT", "/input", {"text": st.session_state.get("input_text", "")}))


def _on_auto_convert_toggled() -> None:
    _remember(_call("PUT", "/auto-convert", {"enabled": bool(st.session_state.get("auto_convert"))}))


def _convert() -> None:
    # Converter timeout is 10 s; allow a little slack for the round trip
    _remember(_call("POST", "/convert", {"text": st.session_state.get("input_text", "")}, timeout=15))


def _clear() -> None:
    state = _call("POST", "/clear")
    _remember(state)
    if state is not None:
        st.session_state["input_text"] = ""


def _copy() -> None:
    _remember(_call("POST", "/copy"))


def _show_notification(state: dict[str, object]) -> None:
    note = state.get("notification")
    if not isinstance(note, dict):
        st.session_state.pop("last_toast", None)
        return
    key = (note.get("message"), note.get("level"))
    if st.session_state.get("last_toast") == key:
        return
    st.session_state["last_toast"] = key
    st.toast(str(note.get("message", "")), icon=TOAST_ICONS.get(str(note.get("level")), "ℹ️"))


def main() -> None:
    st.set_page_config(page_title="Sinhala Unicode Converter", page_icon="🔤", layout="centered")
    st.title("🔤 Sinhala Unicode Converter")
    st.caption(f"API base: {API_BASE}")

    _load_initial_state()

    st.checkbox("Auto-convert", key="auto_convert", on_change=_on_auto_convert_toggled)
    st.text_area("Singlish input", key="input_text", height=180, on_change=_on_input_changed)

    col1, col2, col3 = st.columns([1, 1, 1])
    with col1:
        st.button("Convert", type="primary", on_click=_convert)
    with col2:
        st.button("Clear", type="secondary", on_click=_clear)
    with col3:
        st.button("Copy", type="secondary", on_click=_copy)

    state = st.session_state.get("state")
    if isinstance(state, dict):
        if state.get("pending") or state.get("is_converting"):
            with st.spinner("Converting..."):
                state = _wait_until_settled(state)
            st.session_state["state"] = state

        stats = state.get("stats") or {}
        count_color = COUNT_COLORS.get(str(state.get("char_count_level")), "gray")
        status_color = STATUS_COLORS.get(str(state.get("status")), "gray")
        st.markdown(
            f":{count_color}[{int(stats.get('characters', 0)):,} characters] · "
            f"{int(stats.get('words', 0)):,} words · "
            f":{status_color}[{state.get('status_message', '')}]"
        )

        st.text_area("Sinhala Unicode output", value=str(state.get("output", "")), height=180, disabled=True)
        if state.get("clipboard"):
            st.caption("Copied text")
            st.code(str(state["clipboard"]), language=None)

        _show_notification(state)

    if warning := st.session_state.pop("warning", None):
        st.warning(warning)

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
