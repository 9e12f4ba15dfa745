from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field

import numpy as np
import pytest

from voicewin.app.dictation import DictationRunner
from voicewin.app.wiring import create_session
from voicewin.config.settings import AppSettings, AudioSettings, RecognitionSettings
from voicewin.core.stt.protocol import NAME_COMPLETED, NAME_STARTED, build_envelope


@dataclass
class FakeMic:
    """Pushes 10 ms frames from its own thread: speech first, then silence."""

    on_frames: object
    loud_frames: int = 15
    quiet_frames: int = 60
    fail_start: bool = False

    _stop: threading.Event = field(default_factory=threading.Event)
    _thread: threading.Thread | None = None

    def start(self) -> None:
        if self.fail_start:
            raise OSError("no input device")
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)

    def _run(self) -> None:
        loud = np.full(160, 3000, dtype="<i2").tobytes()
        quiet = np.zeros(160, dtype="<i2").tobytes()
        for chunk in [loud] * self.loud_frames + [quiet] * self.quiet_frames:
            if self._stop.is_set():
                return
            self.on_frames(chunk, 160)
            time.sleep(0.01)


@dataclass
class EchoConnection:
    listener: object
    audio: list[bytes] = field(default_factory=list)

    def send_audio(self, pcm16le: bytes) -> None:
        self.audio.append(pcm16le)

    def stop(self) -> None:
        message = build_envelope(NAME_COMPLETED, result="hello world")
        threading.Thread(target=self.listener.on_completed, args=(message,)).start()

    def shutdown(self) -> None:
        pass


@dataclass
class EchoTransport:
    connections: list[EchoConnection] = field(default_factory=list)

    def connect(self, params, listener):
        conn = EchoConnection(listener)
        self.connections.append(conn)
        threading.Thread(target=listener.on_started, args=(build_envelope(NAME_STARTED),)).start()
        return conn


@dataclass
class RecordingSink:
    texts: list[str] = field(default_factory=list)

    def type_text(self, text: str) -> None:
        self.texts.append(text)


def _settings() -> AppSettings:
    return AppSettings(
        audio=AudioSettings(drain_interval_ms=5, silence_threshold=500.0),
        recognition=RecognitionSettings(max_end_silence_ms=50, start_timeout_s=1.0, stop_timeout_s=1.0),
    )


@pytest.mark.asyncio
async def test_speech_then_silence_types_final_text():
    settings = _settings()
    transport = EchoTransport()
    session = create_session(settings, transport=transport)
    sink = RecordingSink()
    runner = DictationRunner(settings=settings, session=session, sink=sink, device_factory=lambda cb: FakeMic(cb))

    task = asyncio.create_task(runner.run())
    for _ in range(300):
        if sink.texts:
            break
        await asyncio.sleep(0.01)
    runner.request_stop()

    assert await asyncio.wait_for(task, timeout=2.0) == 0
    assert sink.texts == ["hello world"]
    assert len(transport.connections) == 1
    assert transport.connections[0].audio


@pytest.mark.asyncio
async def test_silence_only_never_opens_a_connection():
    settings = _settings()
    transport = EchoTransport()
    session = create_session(settings, transport=transport)
    runner = DictationRunner(
        settings=settings,
        session=session,
        sink=RecordingSink(),
        device_factory=lambda cb: FakeMic(cb, loud_frames=0, quiet_frames=20),
    )

    task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.2)
    runner.request_stop()

    assert await asyncio.wait_for(task, timeout=2.0) == 0
    assert transport.connections == []


@pytest.mark.asyncio
async def test_capture_failure_returns_2():
    settings = _settings()
    session = create_session(settings, transport=EchoTransport())
    runner = DictationRunner(
        settings=settings,
        session=session,
        sink=RecordingSink(),
        device_factory=lambda cb: FakeMic(cb, fail_start=True),
    )

    assert await runner.run() == 2
