from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from voicewin.core.stt.backend import (
    RawMessage,
    RecognitionConnection,
    RecognitionParams,
    RecognitionTransport,
)
from voicewin.core.stt.channel import EventChannel
from voicewin.core.stt.errors import (
    AlreadyActiveError,
    NotActiveError,
    ProtocolDecodeError,
    RecognitionConnectionError,
    RecognitionTimeout,
    SessionClosedError,
    TransportFailure,
)
from voicewin.core.stt.protocol import RecognitionMessage, decode_message
from voicewin.domain.events import FinalResult, PartialResult, RecognitionFailure, SessionState

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Cycle:
    """One Start -> terminal event run over a dedicated connection."""

    number: int
    connection: RecognitionConnection | None = None
    acked: bool = False
    start_error: str | None = None
    abandoned: bool = False
    terminated: bool = False
    ready: threading.Event = field(default_factory=threading.Event)
    finished: threading.Event = field(default_factory=threading.Event)
    _terminal: threading.Lock = field(default_factory=threading.Lock)

    def claim_terminal(self) -> bool:
        return self._terminal.acquire(blocking=False)

    def wake(self) -> None:
        self.ready.set()
        self.finished.set()


class _CycleListener:
    """Translates transport notifications for one cycle into channel events.

    Runs on the transport thread: it only publishes, never touches session state.
    """

    def __init__(self, session: RecognitionSession, cycle: _Cycle) -> None:
        self._session = session
        self._cycle = cycle

    def on_started(self, message: RawMessage) -> None:
        cycle = self._cycle
        if cycle.ready.is_set():
            return
        try:
            decoded = decode_message(message)
        except ProtocolDecodeError as exc:
            cycle.start_error = str(exc)
        else:
            if decoded.ok:
                cycle.acked = True
                logger.debug(f"[STT] Cycle {cycle.number} started (task={decoded.task_id})")
            else:
                cycle.start_error = _describe(decoded)
        cycle.ready.set()

    def on_result_changed(self, message: RawMessage) -> None:
        cycle = self._cycle
        if not self._accepting():
            return
        try:
            decoded = decode_message(message)
        except ProtocolDecodeError as exc:
            self._finish(RecognitionFailure(cycle.number, exc))
            return
        if not self._session.params.enable_partial_results:
            return
        self._session.partials.publish(PartialResult(cycle.number, decoded.result))

    def on_completed(self, message: RawMessage) -> None:
        cycle = self._cycle
        if not self._accepting():
            return
        try:
            decoded = decode_message(message)
        except ProtocolDecodeError as exc:
            self._finish(RecognitionFailure(cycle.number, exc))
            return
        if not decoded.ok:
            self._finish(RecognitionFailure(cycle.number, _failure(decoded)))
            return
        self._finish(FinalResult(cycle.number, decoded.result))

    def on_failed(self, message: RawMessage) -> None:
        cycle = self._cycle
        if cycle.abandoned:
            return
        if not cycle.acked:
            try:
                cycle.start_error = _describe(decode_message(message))
            except ProtocolDecodeError as exc:
                cycle.start_error = str(exc)
            cycle.ready.set()
            return

        try:
            decoded = decode_message(message)
        except ProtocolDecodeError as exc:
            self._finish(RecognitionFailure(cycle.number, exc))
            return

        if decoded.is_silent_speech:
            silence_ms = self._session.params.max_start_silence_ms
            logger.info(f"[STT] No speech within {silence_ms} ms after start, completing with empty result")
            self._finish(FinalResult(cycle.number, "", silent=True))
            return
        self._finish(RecognitionFailure(cycle.number, _failure(decoded)))

    def on_closed(self) -> None:
        cycle = self._cycle
        if cycle.abandoned:
            return
        if not cycle.acked:
            if not cycle.ready.is_set():
                cycle.start_error = "connection closed before start was acknowledged"
                cycle.ready.set()
            return
        self._finish(RecognitionFailure(cycle.number, TransportFailure("connection closed")))

    def _accepting(self) -> bool:
        cycle = self._cycle
        return cycle.acked and not cycle.abandoned and not cycle.terminated

    def _finish(self, event: FinalResult | RecognitionFailure) -> None:
        self._session._publish_terminal(self._cycle, event)


def _describe(message: RecognitionMessage) -> str:
    return f"{message.status} {message.status_text}".strip()


def _failure(message: RecognitionMessage) -> TransportFailure:
    return TransportFailure(
        f"recognition failed: {_describe(message)}",
        status=message.status,
        status_text=message.status_text,
    )


@dataclass(slots=True)
class RecognitionSession:
    """Lifecycle of one streaming recognition connection at a time.

    ``IDLE -> STARTING -> ACTIVE -> STOPPING -> IDLE``, and ``CLOSED`` from any
    state via :meth:`shutdown_recognition`. Every cycle opens a fresh
    connection. Results arrive on three bounded channels: ``partials``,
    ``finals`` and ``errors``; each cycle that reached ACTIVE ends with exactly
    one event on either ``finals`` or ``errors``.

    State changes happen under one lock. Waiting for the handshake or for the
    terminal event happens outside it, so ``shutdown_recognition`` is never
    held up by a slow remote.
    """

    transport: RecognitionTransport
    params: RecognitionParams = field(default_factory=RecognitionParams)
    start_timeout_s: float = 10.0
    stop_timeout_s: float = 10.0
    channel_capacity: int = 10

    partials: EventChannel[PartialResult] = field(init=False)
    finals: EventChannel[FinalResult] = field(init=False)
    errors: EventChannel[RecognitionFailure] = field(init=False)

    _state: SessionState = field(init=False, default=SessionState.IDLE)
    _lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)
    _cycle: _Cycle | None = field(init=False, default=None, repr=False)
    _cycles: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.params.validate()
        if self.start_timeout_s <= 0:
            raise ValueError("start_timeout_s must be > 0")
        if self.stop_timeout_s <= 0:
            raise ValueError("stop_timeout_s must be > 0")
        self.partials = EventChannel("partial", capacity=self.channel_capacity)
        self.finals = EventChannel("final", capacity=self.channel_capacity)
        self.errors = EventChannel("error", capacity=self.channel_capacity)

    @property
    def state(self) -> SessionState:
        with self._lock:
            self._reconcile_locked()
            return self._state

    @property
    def cycle(self) -> int:
        return self._cycles

    def start_recognition(self) -> None:
        with self._lock:
            self._reconcile_locked()
            if self._state is SessionState.CLOSED:
                raise SessionClosedError("session has been shut down")
            if self._state is not SessionState.IDLE:
                raise AlreadyActiveError(f"recognition is already {self._state.value.lower()}")

            self._cycles += 1
            cycle = _Cycle(number=self._cycles)
            self._cycle = cycle
            self._set_state_locked(SessionState.STARTING)
            logger.info(f"[STT] Opening connection for cycle {cycle.number}...")

        # connect may import the SDK and spawn threads; keep the lock free meanwhile
        try:
            connection = self.transport.connect(self.params, _CycleListener(self, cycle))
        except Exception as exc:
            logger.error(f"[STT] Failed to open connection: {exc}")
            with self._lock:
                if self._cycle is cycle:
                    self._release_locked(cycle)
                    self._set_state_locked(SessionState.IDLE)
            raise RecognitionConnectionError(f"failed to open connection: {exc}") from exc

        with self._lock:
            if self._cycle is not cycle:
                try:
                    connection.shutdown()
                except Exception as exc:
                    logger.debug(f"[STT] Connection shutdown raised: {exc}")
                raise RecognitionConnectionError("session was shut down while starting")
            cycle.connection = connection

        cycle.ready.wait(self.start_timeout_s)

        with self._lock:
            if self._cycle is not cycle:
                raise RecognitionConnectionError("session was shut down while starting")
            if cycle.acked:
                self._set_state_locked(SessionState.ACTIVE)
                return
            reason = cycle.start_error or f"no acknowledgement within {self.start_timeout_s}s"
            logger.error(f"[STT] Start failed: {reason}")
            self._release_locked(cycle)
            self._set_state_locked(SessionState.IDLE)
        raise RecognitionConnectionError(f"failed to start recognition: {reason}")

    def send_audio_data(self, data: bytes) -> None:
        with self._lock:
            self._reconcile_locked()
            if self._state is not SessionState.ACTIVE:
                raise NotActiveError(f"recognition is {self._state.value.lower()}, not active")
            if not data:
                return
            cycle = self._cycle
            try:
                cycle.connection.send_audio(bytes(data))  # type: ignore[union-attr]
            except Exception as exc:
                logger.warning(f"[STT] Send failed: {exc}")
                failure = TransportFailure(f"send failed: {exc}")
                self._publish_terminal(cycle, RecognitionFailure(cycle.number, failure))
                self._reconcile_locked()

    def stop_recognition(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Send end-of-stream.

        With ``wait=True`` return once the cycle's terminal event was published
        and the session is back to IDLE. With ``wait=False`` return right away;
        the terminal event still arrives on ``finals`` or ``errors``.
        """
        with self._lock:
            self._reconcile_locked()
            if self._state is SessionState.CLOSED:
                raise SessionClosedError("session has been shut down")
            if self._state is SessionState.IDLE:
                return
            if self._state is SessionState.STARTING:
                raise NotActiveError("recognition is still starting")

            cycle = self._cycle
            if self._state is SessionState.ACTIVE:
                self._set_state_locked(SessionState.STOPPING)
                try:
                    cycle.connection.stop()  # type: ignore[union-attr]
                except Exception as exc:
                    logger.warning(f"[STT] End-of-stream failed: {exc}")
                    failure = TransportFailure(f"stop failed: {exc}")
                    self._publish_terminal(cycle, RecognitionFailure(cycle.number, failure))
                    self._reconcile_locked()
                    return

        if not wait:
            return

        limit = self.stop_timeout_s if timeout is None else timeout
        finished = cycle.finished.wait(limit)

        with self._lock:
            if self._cycle is not cycle:
                return
            if not finished:
                logger.warning(f"[STT] No terminal event within {limit}s, releasing connection")
                self._publish_terminal(
                    cycle,
                    RecognitionFailure(cycle.number, RecognitionTimeout(f"no result within {limit}s after stop")),
                )
            self._reconcile_locked()

    def shutdown_recognition(self) -> None:
        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            cycle = self._cycle
            if cycle is not None:
                self._release_locked(cycle)
                cycle.wake()
            self._set_state_locked(SessionState.CLOSED)

    def __enter__(self) -> RecognitionSession:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.shutdown_recognition()

    def _publish_terminal(self, cycle: _Cycle, event: FinalResult | RecognitionFailure) -> None:
        if cycle.abandoned or not cycle.claim_terminal():
            return
        # reconcile may move to IDLE from here on, before the event is visible
        cycle.terminated = True
        if isinstance(event, FinalResult):
            self.finals.publish(event)
        else:
            logger.warning(f"[STT] Cycle {cycle.number} failed: {event.error}")
            self.errors.publish(event)
        cycle.finished.set()

    def _reconcile_locked(self) -> None:
        cycle = self._cycle
        if cycle is None or self._state not in (SessionState.ACTIVE, SessionState.STOPPING):
            return
        if not cycle.terminated:
            return
        self._release_locked(cycle)
        self._set_state_locked(SessionState.IDLE)

    def _release_locked(self, cycle: _Cycle) -> None:
        cycle.abandoned = True
        if self._cycle is cycle:
            self._cycle = None
        connection = cycle.connection
        cycle.connection = None
        if connection is None:
            return
        try:
            connection.shutdown()
        except Exception as exc:
            logger.debug(f"[STT] Connection shutdown raised: {exc}")

    def _set_state_locked(self, state: SessionState) -> None:
        if self._state == state:
            return
        old_state = self._state
        self._state = state
        logger.info(f"[STT] State: {old_state.name} -> {state.name}")


