"""Remote notification envelope.

Every notification carries a header with a status code and a payload with the
recognized text::

    {"header": {"name": "RecognitionCompleted", "status": 20000000,
                "status_text": "SUCCESS", "task_id": "..."},
     "payload": {"result": "..."}}

Status codes seen in practice:

- 20000000 success
- 40000004 no data sent for too long (idle connection)
- 40270002 no valid text recognized from the audio
- 41010101 unsupported sample rate (only 8000/16000 Hz)
- 41010104 audio longer than the 60 s limit
- 41010105 silent or noise-only audio before max start silence (SILENT_SPEECH)
- 41040201 audio not sent at real-time rate
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from voicewin.core.stt.backend import RawMessage
from voicewin.core.stt.errors import ProtocolDecodeError

STATUS_SUCCESS = 20000000
STATUS_SILENT_SPEECH = 41010105

NAME_STARTED = "RecognitionStarted"
NAME_RESULT_CHANGED = "RecognitionResultChanged"
NAME_COMPLETED = "RecognitionCompleted"
NAME_FAILED = "TaskFailed"


@dataclass(frozen=True, slots=True)
class RecognitionMessage:
    name: str
    status: int
    status_text: str = ""
    task_id: str = ""
    result: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def is_silent_speech(self) -> bool:
        return self.status == STATUS_SILENT_SPEECH


def build_envelope(
    name: str,
    *,
    status: int = STATUS_SUCCESS,
    status_text: str = "SUCCESS",
    task_id: str = "",
    result: str = "",
) -> dict[str, Any]:
    return {
        "header": {"name": name, "status": status, "status_text": status_text, "task_id": task_id},
        "payload": {"result": result},
    }


def decode_message(raw: RawMessage) -> RecognitionMessage:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ProtocolDecodeError(f"invalid JSON notification: {exc}") from exc
    else:
        data = raw

    if not isinstance(data, Mapping):
        raise ProtocolDecodeError("notification must be a JSON object")

    header = data.get("header")
    if not isinstance(header, Mapping):
        raise ProtocolDecodeError("notification has no header")

    status = header.get("status")
    if isinstance(status, bool) or not isinstance(status, int):
        raise ProtocolDecodeError(f"invalid status: {status!r}")

    payload = data.get("payload") or {}
    if not isinstance(payload, Mapping):
        raise ProtocolDecodeError("payload must be an object")
    result = payload.get("result", "")
    if result is None:
        result = ""
    if not isinstance(result, str):
        raise ProtocolDecodeError(f"invalid result: {result!r}")

    return RecognitionMessage(
        name=str(header.get("name") or ""),
        status=status,
        status_text=str(header.get("status_text") or ""),
        task_id=str(header.get("task_id") or ""),
        result=result,
    )
