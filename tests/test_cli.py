from __future__ import annotations

from dataclasses import dataclass

import voicewin.main as cli
from voicewin import __version__
from voicewin.core.stt.errors import RecognitionConnectionError


@dataclass
class FakeRunner:
    settings: object
    session: object
    sink: object
    last_session: object | None = None

    async def run(self) -> int:
        FakeRunner.last_session = self.session
        return 0


def _fake_init(monkeypatch):
    monkeypatch.setattr(cli, "create_secret_store", lambda *_a, **_k: object())
    monkeypatch.setattr(cli, "create_transport", lambda *_a, **_k: object())


def test_run_mic_wires_session_into_runner(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "DictationRunner", FakeRunner)
    _fake_init(monkeypatch)

    code = cli.main(["--config", str(tmp_path / "settings.json"), "run-mic"])

    assert code == 0
    assert FakeRunner.last_session is not None
    assert FakeRunner.last_session.params.sample_rate == 16000


def test_init_failure_returns_2(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "DictationRunner", FakeRunner)
    monkeypatch.setattr(cli, "create_secret_store", lambda *_a, **_k: object())
    monkeypatch.setattr("builtins.print", lambda *_a, **_k: None)

    def _boom(*_a, **_k):
        raise ValueError("missing secret")

    monkeypatch.setattr(cli, "create_transport", _boom)

    code = cli.main(["--config", str(tmp_path / "settings.json"), "run-mic"])
    assert code == 2


def test_transcribe_file_prints_text(monkeypatch, tmp_path, capsys):
    _fake_init(monkeypatch)
    monkeypatch.setattr(cli, "transcribe_file", lambda *_a, **_k: "hello world")
    audio = tmp_path / "a.pcm"
    audio.write_bytes(b"\x00\x00" * 10)

    code = cli.main(["--config", str(tmp_path / "settings.json"), "transcribe-file", str(audio), "--no-pace"])

    assert code == 0
    assert capsys.readouterr().out.strip().endswith("hello world")


def test_transcribe_file_recognition_error_returns_1(monkeypatch, tmp_path, capsys):
    _fake_init(monkeypatch)

    def _fail(*_a, **_k):
        raise RecognitionConnectionError("failed to start recognition: 40000001 Gateway:ACCESS_DENIED")

    monkeypatch.setattr(cli, "transcribe_file", _fail)

    code = cli.main(["--config", str(tmp_path / "settings.json"), "transcribe-file", str(tmp_path / "a.pcm")])

    assert code == 1
    assert "ACCESS_DENIED" in capsys.readouterr().out


def test_version(capsys):
    assert cli.main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_list_devices(monkeypatch, capsys):
    monkeypatch.setattr(cli, "list_input_devices", lambda: [(3, "USB Mic", 1)])

    assert cli.main(["list-devices"]) == 0
    assert "3: USB Mic (1 ch)" in capsys.readouterr().out


def test_missing_command_returns_2(capsys):
    assert cli.main([]) == 2
