import json
import logging
from pathlib import Path

import requests

from .errors import ConversionTimeoutError, MalformedResponseError, TransportError
from .interfaces import ClipboardGateway, ConverterGateway, PreferenceStore, TextSurface

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://easysinhalaunicode.com/Api/convert"
DEFAULT_TIMEOUT_SEC = 10.0


class EasySinhalaUnicodeConverter(ConverterGateway):
    """Remote converter reached over HTTPS.

    The endpoint takes a form-encoded ``data`` field and answers with the
    converted text as the response body. Server identity and response
    schema are not verified beyond "is it a non-empty string".
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        session: requests.Session | None = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def api_url(self) -> str:
        return self._api_url

    def convert(self, text: str) -> str:
        try:
            resp = self._session.post(self._api_url, data={"data": text}, timeout=self._timeout)
            resp.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.warning("Converter at %s timed out after %ss", self._api_url, self._timeout)
            raise ConversionTimeoutError("Request timed out. Please try again.") from e
        except requests.exceptions.RequestException as e:
            logger.warning("Converter request to %s failed: %s", self._api_url, e)
            raise TransportError(f"API Error: {str(e) or 'Unknown error'}") from e
        return self._extract_text(resp)

    @staticmethod
    def _extract_text(resp: requests.Response) -> str:
        body: object = resp.text
        if "json" in resp.headers.get("Content-Type", "").lower():
            try:
                body = resp.json()
            except ValueError as e:
                raise MalformedResponseError("Invalid response format") from e
        if not isinstance(body, str) or not body:
            raise MalformedResponseError("Invalid response format")
        return body


class InMemoryTextSurface(TextSurface):
    def __init__(self, input_text: str = "", output_text: str = "") -> None:
        self.input_text = input_text
        self.output_text = output_text


class SessionClipboard(ClipboardGateway):
    """Holds the last copied text so a front end can hand it to the user's clipboard."""

    def __init__(self) -> None:
        self.text: str | None = None

    def write(self, text: str) -> None:
        self.text = text


class JsonPreferenceStore(PreferenceStore):
    def __init__(self, data_dir: str) -> None:
        self._path = Path(data_dir).resolve() / "preferences.json"

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load_auto_convert(self) -> bool | None:
        value = self._load().get("auto_convert")
        return value if isinstance(value, bool) else None

    def save_auto_convert(self, enabled: bool) -> None:
        prefs = self._load()
        prefs["auto_convert"] = enabled
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(prefs, f, ensure_ascii=False, indent=2)
