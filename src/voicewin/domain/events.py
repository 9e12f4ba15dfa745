from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from voicewin.core.stt.errors import RecognitionError


class SessionState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    STOPPING = "STOPPING"
    CLOSED = "CLOSED"


class RecognitionEventType(str, Enum):
    PARTIAL = "STT_PARTIAL"
    FINAL = "STT_FINAL"
    FAILURE = "STT_FAILURE"


@dataclass(frozen=True, slots=True)
class PartialResult:
    cycle: int
    text: str
    type: RecognitionEventType = RecognitionEventType.PARTIAL


@dataclass(frozen=True, slots=True)
class FinalResult:
    cycle: int
    text: str
    silent: bool = False
    type: RecognitionEventType = RecognitionEventType.FINAL

    def __post_init__(self) -> None:
        if self.silent and self.text:
            raise ValueError("silent FinalResult must carry empty text")


@dataclass(frozen=True, slots=True)
class RecognitionFailure:
    cycle: int
    error: RecognitionError
    type: RecognitionEventType = RecognitionEventType.FAILURE

    @property
    def message(self) -> str:
        return str(self.error)

