from __future__ import annotations

import os

import pytest

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(os.getenv("INTEGRATION") != "1", reason="set INTEGRATION=1 to run integration tests"),
]


def _session():
    api_key = os.getenv("DASHSCOPE_API_KEY")
    if not api_key:
        pytest.skip("missing env var DASHSCOPE_API_KEY")

    try:
        import dashscope  # noqa: F401
    except ModuleNotFoundError as exc:  # pragma: no cover
        raise RuntimeError("dashscope is required for this integration test; install project dependencies.") from exc

    from voicewin.core.stt.backend import RecognitionParams
    from voicewin.core.stt.session import RecognitionSession
    from voicewin.providers.stt.dashscope import DEFAULT_ENDPOINT, DashScopeRecognitionTransport

    transport = DashScopeRecognitionTransport(
        api_key=api_key,
        model=os.getenv("DASHSCOPE_STT_MODEL", "paraformer-realtime-v2"),
        endpoint=os.getenv("DASHSCOPE_STT_ENDPOINT", DEFAULT_ENDPOINT),
    )
    return RecognitionSession(
        transport=transport,
        params=RecognitionParams(max_start_silence_ms=3000),
        start_timeout_s=15.0,
        stop_timeout_s=30.0,
    )


def test_silent_stream_completes_with_empty_text():
    from voicewin.app.file_transcribe import transcribe_pcm

    with _session() as session:
        # one second of silence, paced at real time
        text = transcribe_pcm(session, b"\0" * 32000, sample_rate_hz=16000, chunk_ms=100, pace=1.0)

    assert text == ""


def test_long_silence_reports_silent_final():
    from voicewin.domain.events import SessionState

    with _session() as session:
        session.start_recognition()
        final = session.finals.get(timeout=15.0)

        assert final.text == ""
        assert final.silent
        assert session.errors.drain() == []
        session.stop_recognition()
        assert session.state is SessionState.IDLE
