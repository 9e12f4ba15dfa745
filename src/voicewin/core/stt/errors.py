from __future__ import annotations


class RecognitionError(Exception):
    """Base class for recognition session errors."""


class RecognitionConnectionError(RecognitionError):
    """The remote did not acknowledge the start directive."""


class NotActiveError(RecognitionError):
    pass


class AlreadyActiveError(RecognitionError):
    pass


class SessionClosedError(RecognitionError):
    pass


class ProtocolDecodeError(RecognitionError):
    """A remote notification could not be decoded."""


class TransportFailure(RecognitionError):
    def __init__(self, message: str, *, status: int | None = None, status_text: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text


class RecognitionTimeout(TransportFailure):
    """No terminal event arrived before the stop deadline."""

