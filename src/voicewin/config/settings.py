from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from voicewin.core.audio.processor import AudioProcessorConfig
from voicewin.core.stt.backend import RecognitionParams

DEFAULT_ALIBABA_MODEL = "paraformer-realtime-v2"
DEFAULT_ALIBABA_ENDPOINT = "wss://dashscope.aliyuncs.com/api-ws/v1/inference"


class SinkKind(str, Enum):
    LOG = "log"
    STDOUT = "stdout"


class SecretsBackend(str, Enum):
    KEYRING = "keyring"
    ENV = "env"


@dataclass(slots=True)
class AudioSettings:
    sample_rate_hz: int = 16000
    channels: int = 1
    silence_threshold: float = 500.0
    buffer_duration_s: float = 1.0
    drain_interval_ms: int = 20
    volume_change_threshold: float = 20.0
    input_device: str = ""

    def validate(self) -> None:
        if self.sample_rate_hz not in (8000, 16000):
            raise ValueError("sample_rate_hz must be 8000 or 16000")
        if self.channels != 1:
            raise ValueError("channels must be 1 (mono)")
        if self.silence_threshold < 0:
            raise ValueError("silence_threshold must be >= 0")
        if self.buffer_duration_s <= 0:
            raise ValueError("buffer_duration_s must be > 0")
        if self.drain_interval_ms <= 0:
            raise ValueError("drain_interval_ms must be > 0")
        if self.volume_change_threshold < 0:
            raise ValueError("volume_change_threshold must be >= 0")
        if self.input_device is None:
            raise ValueError("input_device must be a string")

    def processor_config(self) -> AudioProcessorConfig:
        return AudioProcessorConfig(
            sample_rate_hz=self.sample_rate_hz,
            channels=self.channels,
            silence_threshold=self.silence_threshold,
            buffer_duration_s=self.buffer_duration_s,
        )


@dataclass(slots=True)
class RecognitionSettings:
    audio_format: str = "pcm"
    enable_partial_results: bool = True
    enable_punctuation: bool = True
    enable_itn: bool = True
    suppress_disfluency: bool = False
    enable_vad: bool = True
    max_start_silence_ms: int = 10000
    max_end_silence_ms: int = 800
    start_timeout_s: float = 10.0
    stop_timeout_s: float = 10.0
    channel_capacity: int = 10

    def validate(self) -> None:
        if self.audio_format != "pcm":
            raise ValueError("audio_format must be 'pcm'")
        if self.max_start_silence_ms <= 0:
            raise ValueError("max_start_silence_ms must be > 0")
        if self.max_end_silence_ms <= 0:
            raise ValueError("max_end_silence_ms must be > 0")
        if self.start_timeout_s <= 0:
            raise ValueError("start_timeout_s must be > 0")
        if self.stop_timeout_s <= 0:
            raise ValueError("stop_timeout_s must be > 0")
        if self.channel_capacity <= 0:
            raise ValueError("channel_capacity must be > 0")

    def params(self, *, sample_rate: int) -> RecognitionParams:
        return RecognitionParams(
            audio_format=self.audio_format,
            sample_rate=sample_rate,
            enable_partial_results=self.enable_partial_results,
            enable_punctuation=self.enable_punctuation,
            enable_itn=self.enable_itn,
            suppress_disfluency=self.suppress_disfluency,
            enable_vad=self.enable_vad,
            max_start_silence_ms=self.max_start_silence_ms,
            max_end_silence_ms=self.max_end_silence_ms,
        )


@dataclass(slots=True)
class AlibabaSTTSettings:
    model: str = DEFAULT_ALIBABA_MODEL
    endpoint: str = DEFAULT_ALIBABA_ENDPOINT

    def validate(self) -> None:
        if not self.model:
            raise ValueError("model must be non-empty")
        if not self.endpoint:
            raise ValueError("endpoint must be non-empty")


@dataclass(slots=True)
class SinkSettings:
    kind: SinkKind = SinkKind.LOG

    def validate(self) -> None:
        if not isinstance(self.kind, SinkKind):
            raise ValueError("invalid sink kind")


@dataclass(slots=True)
class SecretsSettings:
    backend: SecretsBackend = SecretsBackend.KEYRING

    def validate(self) -> None:
        if not isinstance(self.backend, SecretsBackend):
            raise ValueError("invalid secrets backend")


@dataclass(slots=True)
class AppSettings:
    audio: AudioSettings = field(default_factory=AudioSettings)
    recognition: RecognitionSettings = field(default_factory=RecognitionSettings)
    alibaba_stt: AlibabaSTTSettings = field(default_factory=AlibabaSTTSettings)
    sink: SinkSettings = field(default_factory=SinkSettings)
    secrets: SecretsSettings = field(default_factory=SecretsSettings)

    def validate(self) -> None:
        self.audio.validate()
        self.recognition.validate()
        self.alibaba_stt.validate()
        self.sink.validate()
        self.secrets.validate()


def to_dict(settings: AppSettings) -> dict[str, Any]:
    audio = settings.audio
    recognition = settings.recognition
    return {
        "audio": {
            "sample_rate_hz": audio.sample_rate_hz,
            "channels": audio.channels,
            "silence_threshold": audio.silence_threshold,
            "buffer_duration_s": audio.buffer_duration_s,
            "drain_interval_ms": audio.drain_interval_ms,
            "volume_change_threshold": audio.volume_change_threshold,
            "input_device": audio.input_device,
        },
        "recognition": {
            "audio_format": recognition.audio_format,
            "enable_partial_results": recognition.enable_partial_results,
            "enable_punctuation": recognition.enable_punctuation,
            "enable_itn": recognition.enable_itn,
            "suppress_disfluency": recognition.suppress_disfluency,
            "enable_vad": recognition.enable_vad,
            "max_start_silence_ms": recognition.max_start_silence_ms,
            "max_end_silence_ms": recognition.max_end_silence_ms,
            "start_timeout_s": recognition.start_timeout_s,
            "stop_timeout_s": recognition.stop_timeout_s,
            "channel_capacity": recognition.channel_capacity,
        },
        "alibaba_stt": {
            "model": settings.alibaba_stt.model,
            "endpoint": settings.alibaba_stt.endpoint,
        },
        "sink": {"kind": settings.sink.kind.value},
        "secrets": {"backend": settings.secrets.backend.value},
    }


def _parse_enum(enum_cls: type[Enum], value: object, default: Enum) -> Any:
    """Parse an enum value, falling back to the default for legacy/invalid values."""
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _parse_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def from_dict(data: dict[str, Any]) -> AppSettings:
    audio_data = data.get("audio") or {}
    rec_data = data.get("recognition") or {}
    alibaba_data = data.get("alibaba_stt") or {}

    input_device_raw = audio_data.get("input_device")

    settings = AppSettings(
        audio=AudioSettings(
            sample_rate_hz=int(audio_data.get("sample_rate_hz", 16000)),
            channels=int(audio_data.get("channels", 1)),
            silence_threshold=float(audio_data.get("silence_threshold", 500.0)),
            buffer_duration_s=float(audio_data.get("buffer_duration_s", 1.0)),
            drain_interval_ms=int(audio_data.get("drain_interval_ms", 20)),
            volume_change_threshold=float(audio_data.get("volume_change_threshold", 20.0)),
            input_device=str(input_device_raw) if input_device_raw is not None else "",
        ),
        recognition=RecognitionSettings(
            audio_format=str(rec_data.get("audio_format", "pcm")),
            enable_partial_results=_parse_bool(rec_data, "enable_partial_results", True),
            enable_punctuation=_parse_bool(rec_data, "enable_punctuation", True),
            enable_itn=_parse_bool(rec_data, "enable_itn", True),
            suppress_disfluency=_parse_bool(rec_data, "suppress_disfluency", False),
            enable_vad=_parse_bool(rec_data, "enable_vad", True),
            max_start_silence_ms=int(rec_data.get("max_start_silence_ms", 10000)),
            max_end_silence_ms=int(rec_data.get("max_end_silence_ms", 800)),
            start_timeout_s=float(rec_data.get("start_timeout_s", 10.0)),
            stop_timeout_s=float(rec_data.get("stop_timeout_s", 10.0)),
            channel_capacity=int(rec_data.get("channel_capacity", 10)),
        ),
        alibaba_stt=AlibabaSTTSettings(
            model=str(alibaba_data.get("model", DEFAULT_ALIBABA_MODEL)),
            endpoint=str(alibaba_data.get("endpoint", DEFAULT_ALIBABA_ENDPOINT)),
        ),
        sink=SinkSettings(
            kind=_parse_enum(SinkKind, (data.get("sink") or {}).get("kind", SinkKind.LOG.value), SinkKind.LOG),
        ),
        secrets=SecretsSettings(
            backend=_parse_enum(
                SecretsBackend,
                (data.get("secrets") or {}).get("backend", SecretsBackend.KEYRING.value),
                SecretsBackend.KEYRING,
            ),
        ),
    )
    settings.validate()
    return settings


def load_settings(path: Path) -> AppSettings:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("settings file must contain a JSON object")
    return from_dict(raw)


def save_settings(path: Path, settings: AppSettings) -> None:
    settings.validate()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(to_dict(settings), ensure_ascii=False, indent=2), encoding="utf-8")
