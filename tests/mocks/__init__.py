"""Mock objects for testing."""

from .mock_transport import MockTransport, RecordedRequest, envelope_response, error_envelope, token_response
from .mock_websocket import MockConnector, MockWebSocket, event_frame

__all__ = [
    "MockTransport",
    "RecordedRequest",
    "envelope_response",
    "error_envelope",
    "token_response",
    "MockConnector",
    "MockWebSocket",
    "event_frame",
]
