"""Alibaba Cloud Model Studio (DashScope) realtime recognition transport.

Each connection drives one SDK ``Recognition`` on a worker thread fed through a
control queue, so ``send_audio``/``stop``/``shutdown`` never block the caller.
SDK callbacks are re-shaped into status envelopes for the session listener.
"""

from __future__ import annotations

import contextlib
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any

from voicewin.core.stt.backend import (
    RecognitionConnection,
    RecognitionParams,
    RecognitionTransport,
    TransportListener,
)
from voicewin.core.stt.protocol import (
    NAME_COMPLETED,
    NAME_FAILED,
    NAME_RESULT_CHANGED,
    NAME_STARTED,
    STATUS_SILENT_SPEECH,
    build_envelope,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "paraformer-realtime-v2"
DEFAULT_ENDPOINT = "wss://dashscope.aliyuncs.com/api-ws/v1/inference"

# Status reported when the SDK raises before any server response exists.
STATUS_CLIENT_ERROR = 0


@dataclass(slots=True)
class DashScopeRecognitionTransport(RecognitionTransport):
    api_key: str
    model: str = DEFAULT_MODEL
    endpoint: str = DEFAULT_ENDPOINT
    heartbeat: bool = True

    def connect(self, params: RecognitionParams, listener: TransportListener) -> RecognitionConnection:
        if params.sample_rate not in (8000, 16000):
            raise ValueError("sample_rate must be 8000 or 16000")
        if not self.api_key:
            raise ValueError("api_key must be non-empty")
        if not self.endpoint:
            raise ValueError("endpoint must be non-empty")

        import dashscope  # type: ignore
        from dashscope.audio.asr import Recognition, RecognitionCallback, RecognitionResult  # type: ignore

        dashscope.api_key = self.api_key
        dashscope.base_websocket_api_url = self.endpoint

        connection = _DashScopeConnection(
            Recognition=Recognition,
            RecognitionCallback=RecognitionCallback,
            RecognitionResult=RecognitionResult,
            model=self.model,
            heartbeat=self.heartbeat,
            params=params,
            listener=listener,
        )
        connection.open()
        return connection


def join_sentences(parts: list[str]) -> str:
    """Join recognized sentences, with a space unless a CJK character meets the boundary."""
    text = ""
    for part in parts:
        if not part:
            continue
        if text and not text[-1].isspace() and not (_is_cjk(text[-1]) or _is_cjk(part[0])):
            text += " "
        text += part
    return text


def _is_cjk(ch: str) -> bool:
    # CJK punctuation, kana and ideographs, plus fullwidth forms; Hangul is space-separated
    return "\u3000" <= ch <= "\u9fff" or "\uff00" <= ch <= "\uffef"


_STOP = object()
_SHUTDOWN = object()


@dataclass(slots=True)
class _DashScopeConnection(RecognitionConnection):
    Recognition: Any
    RecognitionCallback: Any
    RecognitionResult: Any
    model: str
    heartbeat: bool
    params: RecognitionParams
    listener: TransportListener

    _control_q: queue.Queue[bytes | object] = field(init=False, repr=False)
    _recognition: Any | None = field(init=False, default=None, repr=False)
    _thread: threading.Thread | None = field(init=False, default=None, repr=False)
    _silence_timer: threading.Timer | None = field(init=False, default=None, repr=False)
    _committed: list[str] = field(init=False, default_factory=list, repr=False)
    _heard_speech: bool = field(init=False, default=False)
    _closed: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self._control_q = queue.Queue()

    def open(self) -> None:
        self._thread = threading.Thread(target=self._thread_main, name="dashscope-recognition", daemon=True)
        self._thread.start()

    def send_audio(self, pcm16le: bytes) -> None:
        if self._closed:
            return
        self._control_q.put_nowait(pcm16le)

    def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._control_q.put_nowait(_STOP)

    def shutdown(self) -> None:
        self._closed = True
        self._cancel_silence_timer()
        self._control_q.put_nowait(_SHUTDOWN)

    def _thread_main(self) -> None:
        try:
            self._recognition = self._create_recognition()
            self._recognition.start()
        except Exception as exc:
            logger.error("DashScope recognition failed to start: %s", exc)
            self.listener.on_failed(build_envelope(NAME_FAILED, status=STATUS_CLIENT_ERROR, status_text=str(exc)))
            self._recognition = None
            return

        try:
            while True:
                message = self._control_q.get()
                if message is _SHUTDOWN:
                    break
                if message is _STOP:
                    # blocks until the server has sent its final result
                    self._recognition.stop()
                    self._recognition = None
                    break
                self._recognition.send_audio_frame(message)
        except Exception as exc:
            logger.warning("DashScope recognition stream error: %s", exc)
            self.listener.on_failed(build_envelope(NAME_FAILED, status=STATUS_CLIENT_ERROR, status_text=str(exc)))
        finally:
            self._cancel_silence_timer()
            if self._recognition is not None:
                with contextlib.suppress(Exception):
                    self._recognition.stop()
                self._recognition = None

    def _create_recognition(self) -> Any:
        params = self.params
        return self.Recognition(
            model=self.model,
            format=params.audio_format,
            sample_rate=params.sample_rate,
            callback=self._make_callback(),
            punctuation_prediction_enabled=params.enable_punctuation,
            inverse_text_normalization_enabled=params.enable_itn,
            disfluency_removal_enabled=params.suppress_disfluency,
            semantic_punctuation_enabled=not params.enable_vad,
            max_sentence_silence=params.max_end_silence_ms,
            heartbeat=self.heartbeat,
        )

    def _start_silence_timer(self) -> None:
        timer = threading.Timer(self.params.max_start_silence_ms / 1000.0, self._on_start_silence)
        timer.daemon = True
        self._silence_timer = timer
        timer.start()

    def _cancel_silence_timer(self) -> None:
        timer = self._silence_timer
        self._silence_timer = None
        if timer is not None:
            timer.cancel()

    def _on_start_silence(self) -> None:
        if self._heard_speech or self._closed:
            return
        self.listener.on_failed(
            build_envelope(NAME_FAILED, status=STATUS_SILENT_SPEECH, status_text="SILENT_SPEECH")
        )
        self.stop()

    def _full_text(self, current: str = "") -> str:
        return join_sentences([*self._committed, current] if current else self._committed)

    def _make_callback(self) -> Any:
        connection = self

        class _Callback(connection.RecognitionCallback):
            def on_open(self) -> None:
                connection._start_silence_timer()
                connection.listener.on_started(build_envelope(NAME_STARTED))

            def on_event(self, result):  # type: ignore[no-untyped-def]
                sentence = result.get_sentence()
                text = sentence.get("text") if isinstance(sentence, dict) else None
                if not text:
                    return
                if not connection._heard_speech:
                    connection._heard_speech = True
                    connection._cancel_silence_timer()

                text = str(text).strip()
                is_end = False
                with contextlib.suppress(Exception):
                    is_end = bool(connection.RecognitionResult.is_sentence_end(sentence))
                request_id = str(getattr(result, "request_id", "") or "")
                if is_end:
                    connection._committed.append(text)
                    full = connection._full_text()
                else:
                    full = connection._full_text(text)
                connection.listener.on_result_changed(
                    build_envelope(NAME_RESULT_CHANGED, task_id=request_id, result=full)
                )

            def on_complete(self) -> None:
                connection._cancel_silence_timer()
                connection.listener.on_completed(build_envelope(NAME_COMPLETED, result=connection._full_text()))

            def on_error(self, result):  # type: ignore[no-untyped-def]
                connection._cancel_silence_timer()
                status = getattr(result, "status_code", None)
                code = getattr(result, "code", "") or ""
                message = getattr(result, "message", "") or ""
                logger.warning("DashScope recognition error: %s %s %s", status, code, message)
                connection.listener.on_failed(
                    build_envelope(
                        NAME_FAILED,
                        status=int(status) if isinstance(status, int) else STATUS_CLIENT_ERROR,
                        status_text=f"{code} {message}".strip(),
                        task_id=str(getattr(result, "request_id", "") or ""),
                    )
                )

            def on_close(self) -> None:
                connection.listener.on_closed()

        return _Callback()
