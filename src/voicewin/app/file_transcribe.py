from __future__ import annotations

import logging
import time
from pathlib import Path

from voicewin.core.stt.errors import NotActiveError, RecognitionTimeout
from voicewin.core.stt.session import RecognitionSession

logger = logging.getLogger(__name__)

BYTES_PER_SAMPLE = 2


def transcribe_pcm(
    session: RecognitionSession,
    pcm: bytes,
    *,
    sample_rate_hz: int,
    chunk_ms: int = 200,
    pace: float = 0.5,
) -> str:
    """Run one recognition cycle over raw mono int16 PCM and return the final text.

    Chunks are sent every ``chunk_ms * pace`` milliseconds (0 disables pacing).
    Raises the cycle's error when it ends in failure.
    """
    if chunk_ms <= 0:
        raise ValueError("chunk_ms must be > 0")
    chunk_bytes = max(int(sample_rate_hz * BYTES_PER_SAMPLE * chunk_ms / 1000), BYTES_PER_SAMPLE)

    session.start_recognition()
    cycle = session.cycle
    sent = 0
    for offset in range(0, len(pcm), chunk_bytes):
        try:
            session.send_audio_data(pcm[offset : offset + chunk_bytes])
        except NotActiveError:
            logger.warning("Recognition ended after %d of %d bytes", sent, len(pcm))
            break
        sent += len(pcm[offset : offset + chunk_bytes])
        if pace > 0:
            time.sleep(chunk_ms * pace / 1000.0)
    session.stop_recognition(wait=True)

    for partial in session.partials.drain():
        logger.debug("Partial: %s", partial.text)
    finals = [f for f in session.finals.drain() if f.cycle == cycle]
    failures = [f for f in session.errors.drain() if f.cycle == cycle]
    if finals:
        return finals[-1].text
    if failures:
        raise failures[-1].error
    raise RecognitionTimeout("recognition ended without a result")


def transcribe_file(session: RecognitionSession, path: Path, *, sample_rate_hz: int, pace: float = 0.5) -> str:
    return transcribe_pcm(session, path.read_bytes(), sample_rate_hz=sample_rate_hz, pace=pace)
