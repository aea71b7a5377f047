from dataclasses import dataclass
from typing import Protocol

from .errors import ConversionError, ValidationError


class ConverterGateway(Protocol):
    def convert(self, text: str) -> str:
        """Send text to the remote converter and return the converted text.
        This is a blocking call; callers should offload to threads if needed.
        """


class TextSurface(Protocol):
    input_text: str
    output_text: str


class ClipboardGateway(Protocol):
    def write(self, text: str) -> None:
        ...


class PreferenceStore(Protocol):
    def load_auto_convert(self) -> bool | None:
        ...

    def save_auto_convert(self, enabled: bool) -> None:
        ...


@dataclass(frozen=True)
class ConversionRequest:
    text: str

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValidationError("Please enter some text to convert")


@dataclass(frozen=True)
class ConversionSuccess:
    text: str


@dataclass(frozen=True)
class ConversionFailure:
    error: ConversionError

    @property
    def reason(self) -> str:
        return str(self.error)


ConversionResult = ConversionSuccess | ConversionFailure


@dataclass(frozen=True)
class Notification:
    message: str
    level: str = "info"


@dataclass(frozen=True)
class TextStats:
    characters: int
    words: int
    lines: int

    @classmethod
    def of(cls, text: str) -> "TextStats":
        return cls(
            characters=len(text),
            words=len(text.split()),
            lines=text.count("\n") + 1,
        )

    @property
    def level(self) -> str:
        if self.characters > 1000:
            return "high"
        if self.characters > 500:
            return "medium"
        return "normal"
