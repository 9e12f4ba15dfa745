from __future__ import annotations

import threading
from dataclasses import dataclass, field

import pytest

from voicewin.app.file_transcribe import transcribe_file, transcribe_pcm
from voicewin.core.stt.errors import TransportFailure
from voicewin.core.stt.protocol import NAME_COMPLETED, NAME_FAILED, NAME_STARTED, build_envelope
from voicewin.core.stt.session import RecognitionSession
from voicewin.domain.events import SessionState


@dataclass
class ScriptedConnection:
    listener: object
    final_text: str
    fail_after_sends: int | None = None
    fail_on_stop: bool = False
    audio: list[bytes] = field(default_factory=list)

    def send_audio(self, pcm16le: bytes) -> None:
        self.audio.append(pcm16le)
        if self.fail_after_sends is not None and len(self.audio) >= self.fail_after_sends:
            self.listener.on_failed(build_envelope(NAME_FAILED, status=41010104, status_text="TOO_LONG_SPEECH"))

    def stop(self) -> None:
        if self.fail_on_stop:
            message = build_envelope(NAME_FAILED, status=40270002, status_text="NO_VALID_TEXT")
            threading.Thread(target=self.listener.on_failed, args=(message,)).start()
            return
        message = build_envelope(NAME_COMPLETED, result=self.final_text)
        threading.Thread(target=self.listener.on_completed, args=(message,)).start()

    def shutdown(self) -> None:
        pass


@dataclass
class ScriptedTransport:
    final_text: str = "the quick brown fox"
    fail_after_sends: int | None = None
    fail_on_stop: bool = False
    connections: list[ScriptedConnection] = field(default_factory=list)

    def connect(self, params, listener):
        conn = ScriptedConnection(listener, self.final_text, self.fail_after_sends, self.fail_on_stop)
        self.connections.append(conn)
        listener.on_started(build_envelope(NAME_STARTED))
        return conn


def _session(transport: ScriptedTransport) -> RecognitionSession:
    return RecognitionSession(transport=transport, start_timeout_s=1.0, stop_timeout_s=1.0)


def test_transcribe_pcm_streams_chunks_and_returns_final():
    transport = ScriptedTransport()
    session = _session(transport)
    pcm = b"\x01\x00" * 16000  # one second at 16 kHz

    text = transcribe_pcm(session, pcm, sample_rate_hz=16000, chunk_ms=200, pace=0)

    assert text == "the quick brown fox"
    assert [len(chunk) for chunk in transport.connections[0].audio] == [6400] * 5
    assert b"".join(transport.connections[0].audio) == pcm
    assert session.state is SessionState.IDLE


def test_transcribe_pcm_raises_cycle_failure():
    session = _session(ScriptedTransport(fail_on_stop=True))

    with pytest.raises(TransportFailure) as excinfo:
        transcribe_pcm(session, b"\x00\x00" * 800, sample_rate_hz=16000, pace=0)

    assert excinfo.value.status == 40270002


def test_transcribe_pcm_stops_sending_after_mid_stream_failure():
    transport = ScriptedTransport(fail_after_sends=2)
    session = _session(transport)

    with pytest.raises(TransportFailure) as excinfo:
        transcribe_pcm(session, b"\x00\x00" * 16000, sample_rate_hz=16000, chunk_ms=100, pace=0)

    assert excinfo.value.status == 41010104
    assert len(transport.connections[0].audio) == 2


def test_transcribe_pcm_rejects_bad_chunk_size():
    with pytest.raises(ValueError):
        transcribe_pcm(_session(ScriptedTransport()), b"", sample_rate_hz=16000, chunk_ms=0)


def test_transcribe_file_reads_raw_pcm(tmp_path):
    path = tmp_path / "speech.pcm"
    path.write_bytes(b"\x10\x00" * 4000)
    transport = ScriptedTransport(final_text="ok")

    assert transcribe_file(_session(transport), path, sample_rate_hz=8000, pace=0) == "ok"
    assert b"".join(transport.connections[0].audio) == path.read_bytes()
