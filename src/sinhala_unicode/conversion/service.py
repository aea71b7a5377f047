import asyncio
import logging

from .errors import ConversionError, MalformedResponseError, TransportError, ValidationError
from .interfaces import (
    ClipboardGateway,
    ConversionFailure,
    ConversionRequest,
    ConversionResult,
    ConversionSuccess,
    ConverterGateway,
    Notification,
    PreferenceStore,
    TextStats,
    TextSurface,
)

logger = logging.getLogger(__name__)


class ControllerStatus:
    READY = "ready"
    CONVERTING = "converting"
    SUCCESS = "success"
    ERROR = "error"


class ConversionController:
    """Core domain object turning text-change and click events into remote conversions.

    The controller is framework-agnostic and must be driven from a running
    asyncio event loop. It keeps at most one outbound request in flight:
    a conversion requested while another one is running is dropped, not
    queued. Text changes are debounced when auto-convert is enabled, and
    every failure is recovered here and surfaced as status plus a
    transient notification.
    """

    def __init__(
        self,
        converter: ConverterGateway,
        surface: TextSurface,
        clipboard: ClipboardGateway,
        preferences: PreferenceStore | None = None,
        *,
        auto_convert: bool = True,
        debounce_delay: float = 0.5,
        silent_copy_max_chars: int = 100,
        notification_ttl: float = 4.0,
    ) -> None:
        self._converter = converter
        self._surface = surface
        self._clipboard = clipboard
        self._preferences = preferences
        self._debounce_delay = debounce_delay
        self._silent_copy_max_chars = silent_copy_max_chars
        self._notification_ttl = notification_ttl

        self.auto_convert = auto_convert
        self.is_converting = False
        self.status = ControllerStatus.READY
        self.status_message = "Ready"
        self._pending_timer: asyncio.TimerHandle | None = None
        self._debounce_task: asyncio.Task | None = None
        self._notification: Notification | None = None
        self._notification_timer: asyncio.TimerHandle | None = None

    @property
    def surface(self) -> TextSurface:
        return self._surface

    @property
    def notification(self) -> Notification | None:
        return self._notification

    @property
    def pending_timer(self) -> asyncio.TimerHandle | None:
        return self._pending_timer

    @property
    def debounce_task(self) -> asyncio.Task | None:
        return self._debounce_task

    @property
    def stats(self) -> TextStats:
        return TextStats.of(self._surface.input_text)

    async def start(self) -> None:
        if self._preferences is not None:
            saved = self._preferences.load_auto_convert()
            if saved is not None:
                self.auto_convert = saved
        self._set_status(ControllerStatus.READY, "Ready")
        if self._surface.input_text.strip():
            await self.request_conversion()

    async def stop(self) -> None:
        self._cancel_pending()
        if self._notification_timer is not None:
            self._notification_timer.cancel()
            self._notification_timer = None
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()

    # Input events

    def on_text_changed(self, text: str) -> None:
        self._surface.input_text = text
        if self.auto_convert:
            self._schedule_debounced()
        else:
            self._set_status(ControllerStatus.READY, "Ready to convert")

    def set_auto_convert(self, enabled: bool) -> None:
        self.auto_convert = enabled
        if enabled:
            self.notify("Auto-convert enabled", "info")
            if self._surface.input_text.strip():
                self._schedule_debounced()
        else:
            self.notify("Auto-convert disabled", "info")
            self._cancel_pending()
        if self._preferences is not None:
            try:
                self._preferences.save_auto_convert(enabled)
            except OSError as e:
                logger.warning("Could not save auto-convert preference: %s", e)

    def clear_input(self) -> None:
        self._cancel_pending()
        self._surface.input_text = ""
        self._surface.output_text = ""
        self._set_status(ControllerStatus.READY, "Ready")
        self.notify("Input cleared", "success")

    # Conversion

    async def request_conversion(self, text: str | None = None) -> ConversionResult | None:
        """Convert ``text`` (or the current input) unless a conversion is already running.

        Returns the settled result, or None when the call was dropped
        because another request is in flight.
        """
        source = self._surface.input_text if text is None else text
        try:
            request = ConversionRequest(source.strip())
        except ValidationError as e:
            self.notify(str(e), "warning")
            return ConversionFailure(e)

        if self.is_converting:
            logger.debug("Conversion already in flight, dropping request")
            return None

        self.is_converting = True
        self._set_status(ControllerStatus.CONVERTING, "Converting...")
        try:
            result = await self._call_converter(request)
            self._apply_result(result)
            return result
        finally:
            self.is_converting = False

    async def _call_converter(self, request: ConversionRequest) -> ConversionResult:
        logger.info("Converting %d characters", len(request.text))
        try:
            text = await asyncio.to_thread(self._converter.convert, request.text)
        except ConversionError as e:
            return ConversionFailure(e)
        except Exception as e:
            logger.exception("Unexpected converter failure")
            return ConversionFailure(TransportError(f"API Error: {str(e) or 'Unknown error'}"))
        if not isinstance(text, str) or not text:
            return ConversionFailure(MalformedResponseError("Invalid response format"))
        return ConversionSuccess(text)

    def _apply_result(self, result: ConversionResult) -> None:
        if isinstance(result, ConversionSuccess):
            self._surface.output_text = result.text
            self._set_status(ControllerStatus.SUCCESS, "Converted successfully")
            logger.info("Converted to %d characters", len(result.text))
            if len(result.text) < self._silent_copy_max_chars:
                self.copy_output(silent=True)
            return
        logger.warning("Conversion failed (%s): %s", result.error.code, result.reason)
        self._surface.output_text = ""
        self._set_status(ControllerStatus.ERROR, "Conversion failed")
        self.notify(f"Failed to convert text. {result.reason}", "error")

    # Debounce

    def _schedule_debounced(self) -> None:
        loop = asyncio.get_running_loop()
        self._cancel_pending()
        self._pending_timer = loop.call_later(self._debounce_delay, self._fire_debounced)

    def _cancel_pending(self) -> None:
        if self._pending_timer is not None:
            self._pending_timer.cancel()
            self._pending_timer = None

    def _fire_debounced(self) -> None:
        self._pending_timer = None
        self._debounce_task = asyncio.ensure_future(self._debounced_convert())

    async def _debounced_convert(self) -> None:
        if self._surface.input_text.strip():
            await self.request_conversion()
        else:
            self._surface.output_text = ""
            self._set_status(ControllerStatus.READY, "Ready")

    # Clipboard & notifications

    def copy_output(self, silent: bool = False) -> bool:
        text = self._surface.output_text.strip()
        if not text:
            if not silent:
                self.notify("No text to copy", "warning")
            return False
        try:
            self._clipboard.write(text)
        except Exception as e:
            logger.warning("Clipboard write failed: %s", e)
            if not silent:
                self.notify("Could not copy to clipboard", "error")
            return False
        if not silent:
            self.notify("Copied to clipboard!", "success")
        return True

    def notify(self, message: str, level: str = "info") -> None:
        if self._notification_timer is not None:
            self._notification_timer.cancel()
        self._notification = Notification(message, level)
        loop = asyncio.get_running_loop()
        self._notification_timer = loop.call_later(self._notification_ttl, self.hide_notification)

    def hide_notification(self) -> None:
        if self._notification_timer is not None:
            self._notification_timer.cancel()
            self._notification_timer = None
        self._notification = None

    def _set_status(self, status: str, message: str) -> None:
        self.status = status
        self.status_message = message

    def snapshot(self) -> dict[str, object]:
        """Plain view of the visible state for front ends."""
        stats = self.stats
        notification = self._notification
        return {
            "input": self._surface.input_text,
            "output": self._surface.output_text,
            "status": self.status,
            "status_message": self.status_message,
            "auto_convert": self.auto_convert,
            "is_converting": self.is_converting,
            "pending": self._pending_timer is not None,
            "stats": {
                "characters": stats.characters,
                "words": stats.words,
                "lines": stats.lines,
            },
            "char_count_level": stats.level,
            "notification": (
                {"message": notification.message, "level": notification.level}
                if notification is not None
                else None
            ),
        }
