class ConversionError(Exception):
    """Base class for failures recovered by the conversion controller."""

    code = "conversion_error"


class ValidationError(ConversionError):
    code = "validation"


class ConversionTimeoutError(ConversionError, TimeoutError):
    code = "timeout"


class TransportError(ConversionError):
    code = "transport"


class MalformedResponseError(ConversionError):
    code = "malformed_response"
