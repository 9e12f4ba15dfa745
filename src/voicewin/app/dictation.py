from __future__ import annotations

import asyncio
import contextlib
import logging
import queue
from dataclasses import dataclass, field

import janus

from voicewin.config.settings import AppSettings
from voicewin.core.audio.capture import AudioCapture, DeviceFactory
from voicewin.core.audio.processor import AudioProcessor
from voicewin.core.audio.source import FrameCallback, InputDevice, SoundDeviceInput, resolve_input_device
from voicewin.core.clock import Clock, QuietTimer, SystemClock
from voicewin.core.output.sink import TextSink
from voicewin.core.stt.errors import (
    AlreadyActiveError,
    NotActiveError,
    RecognitionConnectionError,
    SessionClosedError,
)
from voicewin.core.stt.session import RecognitionSession
from voicewin.domain.events import SessionState

logger = logging.getLogger(__name__)

MAX_PENDING_NOTICES = 32
RESULT_POLL_INTERVAL_S = 0.01
START_RETRY_BACKOFF_S = 1.0


@dataclass(slots=True)
class DictationRunner:
    """Live dictation: microphone -> recognition session -> text sink.

    A cycle starts when the smoothed volume reaches the silence threshold and
    is stopped after ``max_end_silence_ms`` of quiet, so no connection stays
    open between utterances. While idle the ring buffer keeps the most recent
    audio, which is sent as lead-in once the cycle is active.
    """

    settings: AppSettings
    session: RecognitionSession
    sink: TextSink
    device_factory: DeviceFactory | None = None
    clock: Clock = field(default_factory=SystemClock)

    _stop: asyncio.Event | None = field(init=False, default=None, repr=False)
    _quiet: QuietTimer = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._quiet = QuietTimer(self.clock)

    def request_stop(self) -> None:
        if self._stop is not None:
            self._stop.set()

    async def run(self) -> int:
        self._stop = asyncio.Event()
        processor = AudioProcessor(self.settings.audio.processor_config())
        notices: janus.Queue[float | Exception] = janus.Queue(maxsize=MAX_PENDING_NOTICES)

        def _notify(item: float | Exception) -> None:  # called from the capture thread
            try:
                notices.sync_q.put_nowait(item)
            except queue.Full:
                # Drop rather than block the audio thread.
                return

        capture = AudioCapture(
            processor=processor,
            device_factory=self.device_factory or self._sounddevice_factory(),
            clock=self.clock,
            callback_interval_s=self.settings.audio.drain_interval_ms / 1000.0,
            volume_change_threshold=self.settings.audio.volume_change_threshold,
            on_volume_change=_notify,
            on_error=_notify,
        )

        try:
            capture.start()
        except Exception as exc:
            logger.error("Failed to open capture device: %s", exc)
            notices.close()
            await notices.wait_closed()
            return 2

        tasks = [
            asyncio.create_task(self._drain_loop(processor), name="dictation-drain"),
            asyncio.create_task(self._result_loop(), name="dictation-results"),
            asyncio.create_task(self._notice_loop(notices), name="dictation-notices"),
        ]
        logger.info("Dictation running; speak to start recognition")
        try:
            await self._stop.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            capture.close()
            self.session.shutdown_recognition()
            self._deliver_pending()
            notices.close()
            with contextlib.suppress(Exception):
                await notices.wait_closed()
        return 0

    async def _drain_loop(self, processor: AudioProcessor) -> None:
        interval_s = self.settings.audio.drain_interval_ms / 1000.0
        end_silence_s = self.settings.recognition.max_end_silence_ms / 1000.0

        while True:
            await asyncio.sleep(interval_s)
            state = self.session.state

            if state is SessionState.CLOSED:
                return
            if state is SessionState.IDLE:
                if processor.is_silent():
                    continue
                if not await self._start_cycle():
                    await asyncio.sleep(START_RETRY_BACKOFF_S)
                    continue
                self._quiet.reset()
                state = SessionState.ACTIVE
            if state is not SessionState.ACTIVE:
                continue

            pcm = processor.get_pcm_data()
            if pcm:
                try:
                    self.session.send_audio_data(pcm)
                except NotActiveError:
                    logger.debug("Cycle ended before audio could be sent")
                    continue

            if self._quiet.update(processor.is_silent()) >= end_silence_s:
                logger.info("Silence detected, ending utterance")
                self._quiet.reset()
                with contextlib.suppress(NotActiveError, SessionClosedError):
                    self.session.stop_recognition(wait=False)

    async def _start_cycle(self) -> bool:
        try:
            await asyncio.to_thread(self.session.start_recognition)
        except AlreadyActiveError:
            return True
        except RecognitionConnectionError as exc:
            logger.error("Could not start recognition: %s", exc)
            return False
        except SessionClosedError:
            self.request_stop()
            return False
        return True

    async def _result_loop(self) -> None:
        while True:
            self._deliver_pending()
            await asyncio.sleep(RESULT_POLL_INTERVAL_S)

    def _deliver_pending(self) -> None:
        for partial in self.session.partials.drain():
            logger.info(f"[STT] Partial #{partial.cycle}: '{partial.text}'")
        for final in self.session.finals.drain():
            if not final.text:
                logger.info(f"[STT] Cycle {final.cycle} ended without speech")
                continue
            logger.info(f"[STT] Final #{final.cycle}: '{final.text}'")
            self.sink.type_text(final.text)
        for failure in self.session.errors.drain():
            logger.error(f"[STT] Cycle {failure.cycle} failed: {failure.message}")

    async def _notice_loop(self, notices: janus.Queue[float | Exception]) -> None:
        while True:
            item = await notices.async_q.get()
            if isinstance(item, Exception):
                logger.error("Audio capture error: %s", item)
            else:
                logger.debug("Volume: %.1f", item)

    def _sounddevice_factory(self) -> DeviceFactory:
        audio = self.settings.audio
        device = resolve_input_device(audio.input_device) if audio.input_device else None

        def _factory(on_frames: FrameCallback) -> InputDevice:
            return SoundDeviceInput(
                on_frames=on_frames,
                sample_rate_hz=audio.sample_rate_hz,
                channels=audio.channels,
                device=device,
            )

        return _factory
