from __future__ import annotations

import pytest
from typer.testing import CliRunner

from conftest import FakeProvider
from wgapi import cli
from wgapi.core.errors import ProviderError

runner = CliRunner()


class FakeWg(FakeProvider):
    devices: list[str] = ["wg0", "wg1"]

    def list_devices(self) -> list[str]:
        return list(self.devices)


@pytest.fixture
def served(monkeypatch: pytest.MonkeyPatch) -> dict:
    record: dict = {}

    def fake_create_server(config, provider):
        record["config"] = config
        record["provider"] = provider
        return "server"

    monkeypatch.delenv("WGAPI_TOKENS", raising=False)
    monkeypatch.setattr(cli, "WgToolProvider", FakeWg)
    monkeypatch.setattr(cli, "create_server", fake_create_server)
    monkeypatch.setattr(cli, "run_server", lambda server: record.setdefault("ran", server))
    return record


def test_serve_command(served: dict) -> None:
    result = runner.invoke(cli.app, ["serve", "--device", "wg0", "--listen", "127.0.0.1:9000", "--token", "s3cret"])
    assert result.exit_code == 0
    assert served["ran"] == "server"
    config = served["config"]
    assert config.device == "wg0"
    assert config.listen_address == ("127.0.0.1", 9000)
    assert config.tokens == ("s3cret",)


def test_serve_reads_tokens_from_environment(served: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WGAPI_TOKENS", "one,two")
    result = runner.invoke(cli.app, ["serve", "--device", "wg0"])
    assert result.exit_code == 0
    assert served["config"].tokens == ("one", "two")


def test_serve_ignores_empty_token(served: dict) -> None:
    result = runner.invoke(cli.app, ["serve", "--device", "wg0", "--token", ""])
    assert result.exit_code == 0
    assert served["config"].tokens == ()


def test_serve_unknown_device(served: dict) -> None:
    result = runner.invoke(cli.app, ["serve", "--device", "wg9"])
    assert result.exit_code == 1
    assert 'Error: device "wg9" does not exist' in result.stderr
    assert "ran" not in served


def test_serve_requires_device(served: dict) -> None:
    result = runner.invoke(cli.app, ["serve"])
    assert result.exit_code == 1
    assert "Error: device name is required (--device)" in result.stderr
    assert "Traceback" not in result.stderr


def test_serve_tls_requires_key_and_cert(served: dict) -> None:
    result = runner.invoke(cli.app, ["serve", "--device", "wg0", "--tls", "--tls-cert", "server.crt"])
    assert result.exit_code == 1
    assert "Error: tls key and cert required for TLS" in result.stderr


def test_serve_with_config_file(served: dict, tmp_path) -> None:
    path = tmp_path / "wgapi.yaml"
    path.write_text("device: wg0\nlisten: '9100'\ntokens: [from-file]\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["serve", "--config", str(path)])
    assert result.exit_code == 0
    assert served["config"].listen_address == ("localhost", 9100)
    assert served["config"].tokens == ("from-file",)


def test_devices_command(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "WgToolProvider", FakeWg)
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 0
    assert result.stdout.split() == ["wg0", "wg1"]


def test_devices_command_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    class NoDevices(FakeWg):
        devices = []

    monkeypatch.setattr(cli, "WgToolProvider", NoDevices)
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 0
    assert "No WireGuard devices found." in result.stdout


def test_devices_command_error_is_clean(monkeypatch: pytest.MonkeyPatch) -> None:
    class Failing(FakeWg):
        def list_devices(self) -> list[str]:
            raise ProviderError("'wg' not found. Install wireguard-tools and retry.")

    monkeypatch.setattr(cli, "WgToolProvider", Failing)
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 1
    assert "Error: could not list WireGuard devices: 'wg' not found" in result.stderr
    assert "Traceback" not in result.stderr


def test_version_command() -> None:
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == "WG-API Version: 1.0.0"
