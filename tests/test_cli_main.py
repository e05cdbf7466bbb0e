"""Tests for the CLI entry point."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
import yaml

from llm_vision.__main__ import main as cli_main
from llm_vision.config import AppConfig
from llm_vision.credentials import MappingCredentialStore
from llm_vision.errors import ProviderError
from llm_vision.models.base import SourceKind, WorkItem


def test_cli_lists_providers(capsys):
    assert cli_main(["--list-providers"]) == 0

    payload = json.loads(capsys.readouterr().out)
    ids = [row["id"] for row in payload]
    assert ids[0] == "openai"
    assert {"openrouter", "anthropic", "custom"} <= set(ids)


def test_cli_requires_an_image_source(tmp_path):
    with pytest.raises(SystemExit):
        cli_main(["--config", str(tmp_path / "settings.yaml")])


def test_cli_list_models_without_credentials_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli_main(["--list-models", "--credentials", str(tmp_path / "absent.yaml")])
    assert excinfo.value.code == 2


def test_cli_list_models(monkeypatch, tmp_path, capsys):
    credentials = tmp_path / "credentials.yaml"
    credentials.write_text(yaml.safe_dump({"universal": {"api_key": "sk"}}), encoding="utf-8")

    def fake_send(self, method, url, headers, json_body=None, *, timeout=None):
        assert url == "https://models.dev/api.json"
        image = {"input": ["text", "image"]}
        return {
            "openai": {
                "name": "OpenAI",
                "models": {
                    "gpt-4o": {"name": "GPT-4o", "release_date": "2024-05-13", "modalities": image},
                    "gpt-4o-mini": {
                        "name": "GPT-4o mini",
                        "release_date": "2024-07-18",
                        "modalities": image,
                    },
                },
            },
        }

    monkeypatch.setattr("llm_vision.io.http.HttpTransport.send", fake_send)

    cli_main(["--list-models", "--credentials", str(credentials)])

    payload = json.loads(capsys.readouterr().out)
    assert [row["id"] for row in payload] == ["gpt-4o-mini", "gpt-4o"]
    assert payload[1]["name"] == "OpenAI: GPT-4o"


def _install_fakes(monkeypatch, tmp_path, *, error=None):
    captured: dict[str, object] = {}

    class DummyStore:
        def __init__(self, path=None, credentials_path=None) -> None:
            self.credentials_path = tmp_path / "credentials.yaml"

        def credential_store(self) -> MappingCredentialStore:
            return MappingCredentialStore()

        def load(self) -> AppConfig:
            return AppConfig(model="gpt-4o", custom_headers={"X-Base": "1"})

    class DummyAnalyzer:
        def __init__(self, config, credential_store) -> None:
            captured["config"] = config
            self.transport = SimpleNamespace(close=lambda: captured.setdefault("closed", True))

        def analyze_items(self, items):
            captured["items"] = items
            if error is not None:
                raise error
            return [WorkItem(json={"analysis": "A cat."})]

    monkeypatch.setattr("llm_vision.__main__.SettingsStore", DummyStore)
    monkeypatch.setattr("llm_vision.__main__.VisionAnalyzer", DummyAnalyzer)
    return captured


def test_cli_analyses_an_image_file(monkeypatch, tmp_path, capsys):
    image_path = tmp_path / "photo.png"
    image_path.write_bytes(b"\x89PNG\r\n\x1a\nfake")
    captured = _install_fakes(monkeypatch, tmp_path)

    exit_code = cli_main(
        [
            "--image",
            str(image_path),
            "--model",
            "gpt-4o-mini",
            "--prompt",
            "Describe it.",
            "--header",
            "X-Trace: abc",
            "--include-metadata",
        ]
    )

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == [{"analysis": "A cat."}]
    config = captured["config"]
    assert config.image_source is SourceKind.BINARY
    assert config.effective_model == "gpt-4o-mini"
    assert config.prompt == "Describe it."
    assert config.include_metadata is True
    assert config.custom_headers == {"X-Base": "1", "X-Trace": "abc"}
    (item,) = captured["items"]
    attachment = item.binary["data"]
    assert attachment.file_name == "photo.png"
    assert attachment.data == image_path.read_bytes()
    assert captured["closed"] is True


def test_cli_url_source(monkeypatch, tmp_path, capsys):
    captured = _install_fakes(monkeypatch, tmp_path)

    cli_main(["--url", "https://example.com/a.jpg"])

    config = captured["config"]
    assert config.image_source is SourceKind.URL
    assert config.image_url == "https://example.com/a.jpg"


def test_cli_reports_analysis_errors(monkeypatch, tmp_path, capsys):
    captured = _install_fakes(monkeypatch, tmp_path, error=ProviderError("HTTP 401: bad key"))

    with pytest.raises(SystemExit) as excinfo:
        cli_main(["--base64", "aGVsbG8="])

    assert excinfo.value.code == 1
    assert "HTTP 401: bad key" in capsys.readouterr().err
    assert captured["closed"] is True


def test_cli_rejects_malformed_header(monkeypatch, tmp_path):
    _install_fakes(monkeypatch, tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        cli_main(["--url", "https://example.com/a.jpg", "--header", "broken"])
    assert excinfo.value.code == 1


def test_cli_overrides_pass_through_config_validation(monkeypatch, tmp_path, capsys):
    captured = _install_fakes(monkeypatch, tmp_path)

    cli_main(["--url", "https://example.com/a.jpg", "--model", "  gpt-4o-mini  "])

    config = captured["config"]
    assert config.manual_model_id == "gpt-4o-mini"
    assert config.effective_model == "gpt-4o-mini"


def test_cli_blank_model_falls_back_to_configured_model(monkeypatch, tmp_path, capsys):
    captured = _install_fakes(monkeypatch, tmp_path)

    cli_main(["--url", "https://example.com/a.jpg", "--model", "   "])

    assert captured["config"].manual_model_id is None
    assert captured["config"].effective_model == "gpt-4o"


def test_cli_reports_unreadable_image(monkeypatch, tmp_path, capsys):
    captured = _install_fakes(monkeypatch, tmp_path)
    missing = tmp_path / "nope.png"

    with pytest.raises(SystemExit) as excinfo:
        cli_main(["--image", str(missing)])

    assert excinfo.value.code == 1
    assert f"cannot read image {missing}" in capsys.readouterr().err
    assert "items" not in captured
