from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

# (raw little-endian int16 PCM, frame count)
FrameCallback = Callable[[bytes, int], None]


class InputDevice(Protocol):
    def start(self) -> None: ...
    def close(self) -> None: ...


@dataclass(slots=True)
class SoundDeviceInput(InputDevice):
    """Raw int16 capture through sounddevice/PortAudio.

    ``on_frames`` runs on the PortAudio thread and must return quickly.
    """

    on_frames: FrameCallback
    sample_rate_hz: int = 16000
    channels: int = 1
    device: int | str | None = None
    blocksize: int = 0

    _stream: Any = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if self.channels <= 0:
            raise ValueError("channels must be > 0")

    def start(self) -> None:
        if self._stream is not None:
            return

        import sounddevice as sd  # type: ignore

        def _callback(indata, frames, _time, status):  # called from PortAudio thread
            if status:
                logger.warning("sounddevice input status: %s", status)
            self.on_frames(bytes(indata), int(frames))

        stream = sd.RawInputStream(
            samplerate=self.sample_rate_hz,
            channels=self.channels,
            dtype="int16",
            callback=_callback,
            device=self.device,
            blocksize=self.blocksize,
        )
        stream.start()
        self._stream = stream

    def close(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        with contextlib.suppress(Exception):
            stream.stop()
        with contextlib.suppress(Exception):
            stream.close()


def list_input_devices() -> list[tuple[int, str, int]]:
    """Return ``(index, name, max_input_channels)`` for every capture device."""
    import sounddevice as sd  # type: ignore

    devices = []
    for idx, info in enumerate(sd.query_devices()):
        channels = int(info.get("max_input_channels", 0) or 0)
        if channels > 0:
            devices.append((idx, str(info.get("name", "") or ""), channels))
    return devices


def resolve_input_device(device: str = "") -> int | None:
    device = (device or "").strip()
    if not device:
        return None

    inputs = list_input_devices()
    with contextlib.suppress(ValueError):
        idx = int(device)
        if any(i == idx for i, _name, _ch in inputs):
            return idx

    for idx, name, _channels in inputs:
        if name.lower() == device.lower():
            return idx
    return None
