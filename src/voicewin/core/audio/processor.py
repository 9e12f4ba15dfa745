from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from voicewin.core.audio.ring_buffer import RingBuffer

BYTES_PER_SAMPLE = 2
VOLUME_DECAY = 0.7
VOLUME_WEIGHT = 0.3


@dataclass(frozen=True, slots=True)
class AudioProcessorConfig:
    sample_rate_hz: int = 16000
    channels: int = 1
    silence_threshold: float = 500.0
    buffer_duration_s: float = 1.0

    def validate(self) -> None:
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if self.channels <= 0:
            raise ValueError("channels must be > 0")
        if self.silence_threshold < 0:
            raise ValueError("silence_threshold must be >= 0")
        if self.buffer_duration_s <= 0:
            raise ValueError("buffer_duration_s must be > 0")

    @property
    def buffer_size_bytes(self) -> int:
        frame_bytes = self.channels * BYTES_PER_SAMPLE
        size = int(self.sample_rate_hz * frame_bytes * self.buffer_duration_s)
        return max(size - size % frame_bytes, frame_bytes)


@dataclass(slots=True)
class AudioProcessor:
    """Buffers raw int16 PCM for transmission and tracks a smoothed volume."""

    config: AudioProcessorConfig
    _ring: RingBuffer
    _smoothed_volume: float

    def __init__(self, config: AudioProcessorConfig | None = None) -> None:
        self.config = config or AudioProcessorConfig()
        self.config.validate()
        self._ring = RingBuffer(self.config.buffer_size_bytes)
        self._smoothed_volume = 0.0

    @property
    def buffer_size(self) -> int:
        return self._ring.size()

    @property
    def smoothed_volume(self) -> float:
        return self._smoothed_volume

    def process_audio(self, samples: bytes, frame_count: int) -> float:
        """Buffer one frame batch and return the updated smoothed volume.

        The batch volume is the sum of absolute int16 sample values divided by
        ``frame_count``; a trailing odd byte is ignored.
        """
        self._ring.write(samples)

        usable = len(samples) - len(samples) % BYTES_PER_SAMPLE
        if usable and frame_count > 0:
            pcm = np.frombuffer(samples, dtype="<i2", count=usable // BYTES_PER_SAMPLE)
            total = float(np.abs(pcm.astype(np.int32)).sum())
            current = total / frame_count
        else:
            current = 0.0

        self._smoothed_volume = self._smoothed_volume * VOLUME_DECAY + current * VOLUME_WEIGHT
        return self._smoothed_volume

    def get_pcm_data(self) -> bytes:
        return self._ring.read(self._ring.size())

    def is_silent(self) -> bool:
        return self._smoothed_volume < self.config.silence_threshold

    def get_stats(self) -> tuple[int, int]:
        return self._ring.size(), self._ring.available()

    def reset(self) -> None:
        self._ring.reset()
        self._smoothed_volume = 0.0
