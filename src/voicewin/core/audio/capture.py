from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from voicewin.core.audio.processor import AudioProcessor
from voicewin.core.audio.source import FrameCallback, InputDevice
from voicewin.core.clock import Clock, SystemClock, Throttle

logger = logging.getLogger(__name__)

DeviceFactory = Callable[[FrameCallback], InputDevice]


@dataclass(slots=True)
class AudioCapture:
    """Feeds device frames into an AudioProcessor.

    ``on_volume_change`` fires when the smoothed volume moved by more than
    ``volume_change_threshold`` since the last report; ``on_audio_data`` fires
    at most once per ``callback_interval_s``. Both run on the device thread.
    """

    processor: AudioProcessor
    device_factory: DeviceFactory
    clock: Clock = field(default_factory=SystemClock)
    callback_interval_s: float = 0.02
    volume_change_threshold: float = 20.0
    on_volume_change: Callable[[float], None] | None = None
    on_audio_data: Callable[[], None] | None = None
    on_error: Callable[[Exception], None] | None = None

    _device: InputDevice | None = field(init=False, default=None, repr=False)
    _last_volume: float = field(init=False, default=0.0)
    _data_throttle: Throttle = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.callback_interval_s <= 0:
            raise ValueError("callback_interval_s must be > 0")
        if self.volume_change_threshold < 0:
            raise ValueError("volume_change_threshold must be >= 0")
        self._data_throttle = Throttle(self.clock, self.callback_interval_s)

    @property
    def running(self) -> bool:
        return self._device is not None

    def start(self) -> None:
        if self._device is not None:
            return
        device = self.device_factory(self.handle_frames)
        try:
            device.start()
        except Exception:
            logger.exception("Failed to start audio capture")
            device.close()
            raise
        self._device = device
        logger.info("Audio capture started")

    def handle_frames(self, data: bytes, frame_count: int) -> None:
        try:
            volume = self.processor.process_audio(data, frame_count)

            if self.on_volume_change is not None and abs(volume - self._last_volume) > self.volume_change_threshold:
                self.on_volume_change(volume)
                self._last_volume = volume

            if self.on_audio_data is not None and self._data_throttle.ready():
                self.on_audio_data()
        except Exception as exc:
            if self.on_error is None:
                raise
            self.on_error(exc)

    def get_pcm_data(self) -> bytes:
        return self.processor.get_pcm_data()

    def stop(self) -> None:
        device = self._device
        self._device = None
        if device is not None:
            device.close()
            logger.info("Audio capture stopped")

    def close(self) -> None:
        self.stop()
        self.processor.reset()
