"""
Domain layer for Sinhala Unicode conversion.
Provides interfaces (gateways), the error taxonomy and the controller that
debounces input and drives the remote converter, so front-ends (HTTP or
others) can use the same core logic.
"""

from .errors import (
    ConversionError,
    ConversionTimeoutError,
    MalformedResponseError,
    TransportError,
    ValidationError,
)
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
from .service import ControllerStatus, ConversionController
