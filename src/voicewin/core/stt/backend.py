from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Protocol

# Raw notification as delivered by a transport: JSON text/bytes or a parsed mapping.
RawMessage = str | bytes | Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class RecognitionParams:
    """Start directive sent when a connection is opened."""

    audio_format: str = "pcm"
    sample_rate: int = 16000
    enable_partial_results: bool = True
    enable_punctuation: bool = True
    enable_itn: bool = True
    suppress_disfluency: bool = False
    enable_vad: bool = True
    max_start_silence_ms: int = 10000
    max_end_silence_ms: int = 800

    def validate(self) -> None:
        if self.audio_format != "pcm":
            raise ValueError("audio_format must be 'pcm'")
        if self.sample_rate not in (8000, 16000):
            raise ValueError("sample_rate must be 8000 or 16000")
        if self.max_start_silence_ms <= 0:
            raise ValueError("max_start_silence_ms must be > 0")
        if self.max_end_silence_ms <= 0:
            raise ValueError("max_end_silence_ms must be > 0")

    def to_directive(self) -> dict[str, Any]:
        return asdict(self)


class TransportListener(Protocol):
    """Receives notifications on the transport's own thread. Must not block."""

    def on_started(self, message: RawMessage) -> None: ...
    def on_result_changed(self, message: RawMessage) -> None: ...
    def on_completed(self, message: RawMessage) -> None: ...
    def on_failed(self, message: RawMessage) -> None: ...
    def on_closed(self) -> None: ...


class RecognitionConnection(Protocol):
    def send_audio(self, pcm16le: bytes) -> None: ...
    def stop(self) -> None: ...
    def shutdown(self) -> None: ...


class RecognitionTransport(Protocol):
    def connect(self, params: RecognitionParams, listener: TransportListener) -> RecognitionConnection:
        """Open a new connection and send the start directive without waiting for the ack."""
        ...
