from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Protocol, TextIO

logger = logging.getLogger(__name__)


class TextSink(Protocol):
    def type_text(self, text: str) -> None: ...


class LoggingTextSink:
    """Stand-in for keystroke injection into the focused window."""

    def type_text(self, text: str) -> None:
        logger.info(f"[SINK] Typing: '{text}'")


@dataclass(slots=True)
class StdoutTextSink:
    stream: TextIO | None = None

    def type_text(self, text: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(text + "\n")
        stream.flush()
