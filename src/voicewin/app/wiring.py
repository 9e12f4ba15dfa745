from __future__ import annotations

import logging
import os

from voicewin.config.settings import AppSettings, SecretsBackend, SecretsSettings, SinkKind
from voicewin.core.output.sink import LoggingTextSink, StdoutTextSink, TextSink
from voicewin.core.storage.secrets import EnvSecretStore, KeyringSecretStore, SecretStore, mask_secret
from voicewin.core.stt.backend import RecognitionTransport
from voicewin.core.stt.session import RecognitionSession
from voicewin.providers.stt.dashscope import DashScopeRecognitionTransport

logger = logging.getLogger(__name__)

ALIBABA_API_KEY_SECRET = "alibaba_api_key"
ALIBABA_API_KEY_ENV = "DASHSCOPE_API_KEY"


def create_secret_store(settings: SecretsSettings) -> SecretStore:
    if settings.backend == SecretsBackend.KEYRING:
        return KeyringSecretStore()
    if settings.backend == SecretsBackend.ENV:
        return EnvSecretStore({ALIBABA_API_KEY_SECRET: ALIBABA_API_KEY_ENV})
    raise ValueError(f"Unsupported secrets backend: {settings.backend}")


def require_secret(secrets: SecretStore, *, key: str, env_var: str) -> str:
    value = secrets.get(key) or os.getenv(env_var)
    if value:
        return value
    raise ValueError(f"Missing secret `{key}` (or env var {env_var})")


def create_transport(settings: AppSettings, *, secrets: SecretStore) -> RecognitionTransport:
    api_key = require_secret(secrets, key=ALIBABA_API_KEY_SECRET, env_var=ALIBABA_API_KEY_ENV)
    logger.info("Using DashScope model %s with key %s", settings.alibaba_stt.model, mask_secret(api_key))
    return DashScopeRecognitionTransport(
        api_key=api_key,
        model=settings.alibaba_stt.model,
        endpoint=settings.alibaba_stt.endpoint,
    )


def create_session(settings: AppSettings, *, transport: RecognitionTransport) -> RecognitionSession:
    recognition = settings.recognition
    return RecognitionSession(
        transport=transport,
        params=recognition.params(sample_rate=settings.audio.sample_rate_hz),
        start_timeout_s=recognition.start_timeout_s,
        stop_timeout_s=recognition.stop_timeout_s,
        channel_capacity=recognition.channel_capacity,
    )


def create_text_sink(settings: AppSettings) -> TextSink:
    if settings.sink.kind == SinkKind.STDOUT:
        return StdoutTextSink()
    return LoggingTextSink()
