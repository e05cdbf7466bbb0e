"""Tests for the batch orchestrator."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from llm_vision.config import AppConfig
from llm_vision.credentials import MappingCredentialStore
from llm_vision.errors import (
    AuthError,
    ConfigurationError,
    MissingAttachment,
    ProviderError,
    UnsafeUrl,
)
from llm_vision.models.base import BinaryAttachment, SourceKind, WorkItem
from llm_vision.services.analyzer import VisionAnalyzer

CHAT_RESPONSE = {
    "model": "gpt-4o",
    "choices": [{"message": {"content": "A small square."}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 5},
}
MESSAGE_RESPONSE = {
    "model": "claude-3-5-sonnet",
    "content": [{"type": "text", "text": "A tiny image."}],
    "usage": {"input_tokens": 7, "output_tokens": 3},
    "stop_reason": "end_turn",
}


class FakeTransport:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def send(self, method, url, headers, json_body=None, *, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "body": json_body, "timeout": timeout}
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class CountingStore(MappingCredentialStore):
    def __init__(self, sets) -> None:
        super().__init__(sets)
        self.calls = 0

    def get(self, name):
        self.calls += 1
        return super().get(name)


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (2, 2), color=(200, 10, 10)).save(buffer, format="PNG")
    return buffer.getvalue()


def _item(**json) -> WorkItem:
    return WorkItem(
        json=dict(json),
        binary={"data": BinaryAttachment(data=_png_bytes(), mime_type="image/png", file_name="a.png")},
    )


def _openai_store() -> MappingCredentialStore:
    return MappingCredentialStore({"universal": {"provider": "openai", "api_key": "sk-test"}})


def test_binary_item_is_analyzed_and_merged():
    transport = FakeTransport(CHAT_RESPONSE)
    analyzer = VisionAnalyzer(AppConfig(model="gpt-4o"), _openai_store(), transport=transport)
    item = _item(id=1, title="keep me")

    (output,) = analyzer.analyze_items([item])

    assert output.json == {"id": 1, "title": "keep me", "analysis": "A small square."}
    assert output.binary is item.binary
    assert item.json == {"id": 1, "title": "keep me"}

    call = transport.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["timeout"] == 60.0
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    image_url = call["body"]["messages"][-1]["content"][1]["image_url"]["url"]
    assert image_url == "data:image/png;base64," + base64.b64encode(_png_bytes()).decode("ascii")


def test_metadata_included_on_request_with_mime_warning():
    store = MappingCredentialStore({"universal": {"provider": "anthropic", "api_key": "ant"}})
    transport = FakeTransport(MESSAGE_RESPONSE)
    config = AppConfig(model="claude-3-5-sonnet", include_metadata=True, output_property_name="caption")
    item = WorkItem(binary={"data": BinaryAttachment(data=_png_bytes(), mime_type="image/jpeg")})

    (output,) = VisionAnalyzer(config, store, transport=transport).analyze_items([item])

    assert output.json["caption"] == "A tiny image."
    metadata = output.json["metadata"]
    assert metadata["usage"] == {"input_tokens": 7, "output_tokens": 3}
    assert metadata["finish_reason"] == "end_turn"
    assert metadata["model"] == "claude-3-5-sonnet"
    assert "magic bytes" in metadata["warnings"][0]
    source = transport.calls[0]["body"]["messages"][0]["content"][0]["source"]
    assert source["media_type"] == "image/png"


def test_credentials_resolved_once_per_batch():
    store = CountingStore({"openrouter": {"api_key": "or"}})
    transport = FakeTransport(CHAT_RESPONSE, CHAT_RESPONSE, CHAT_RESPONSE)
    analyzer = VisionAnalyzer(AppConfig(model="m"), store, transport=transport)

    outputs = analyzer.analyze_items([_item(), _item(), _item()])

    assert len(outputs) == 3
    assert store.calls == 1
    assert all(call["url"].startswith("https://openrouter.ai/api/v1") for call in transport.calls)


def test_auth_failure_is_fatal_even_when_continuing():
    transport = FakeTransport()
    analyzer = VisionAnalyzer(
        AppConfig(model="m", continue_on_fail=True), MappingCredentialStore(), transport=transport
    )
    with pytest.raises(AuthError):
        analyzer.analyze_items([_item()])
    assert transport.calls == []


def test_empty_batch_skips_credentials():
    analyzer = VisionAnalyzer(AppConfig(), MappingCredentialStore(), transport=FakeTransport())
    assert analyzer.analyze_items([]) == []


def test_first_error_aborts_batch_by_default():
    transport = FakeTransport(ProviderError("boom", status_code=500), CHAT_RESPONSE)
    analyzer = VisionAnalyzer(AppConfig(model="m"), _openai_store(), transport=transport)

    with pytest.raises(ProviderError):
        analyzer.analyze_items([_item(), _item()])
    assert len(transport.calls) == 1


def test_continue_on_fail_records_error_and_proceeds():
    transport = FakeTransport(ProviderError("HTTP 429: rate limited", status_code=429), CHAT_RESPONSE)
    config = AppConfig(model="m", continue_on_fail=True)
    analyzer = VisionAnalyzer(config, _openai_store(), transport=transport)
    first, second = _item(id=1), _item(id=2)

    outputs = analyzer.analyze_items([first, second])

    assert outputs[0].json["id"] == 1
    assert outputs[0].json["error"] == "HTTP 429: rate limited"
    assert "ProviderError" in outputs[0].json["details"]
    assert "analysis" not in outputs[0].json
    assert outputs[0].binary is first.binary
    assert outputs[1].json["analysis"] == "A small square."


def test_validation_error_happens_before_network():
    transport = FakeTransport(CHAT_RESPONSE)
    config = AppConfig(model="m", image_source=SourceKind.URL, image_url="javascript:alert(1)")
    analyzer = VisionAnalyzer(config, _openai_store(), transport=transport)

    with pytest.raises(UnsafeUrl):
        analyzer.analyze_items([WorkItem()])
    assert transport.calls == []


def test_missing_attachment_lists_available_names():
    analyzer = VisionAnalyzer(
        AppConfig(model="m", binary_property_name="image"), _openai_store(), transport=FakeTransport()
    )
    with pytest.raises(MissingAttachment) as excinfo:
        analyzer.analyze_items([_item()])
    assert "[data]" in str(excinfo.value)


def test_missing_model_is_configuration_error():
    analyzer = VisionAnalyzer(AppConfig(), _openai_store(), transport=FakeTransport())
    with pytest.raises(ConfigurationError, match="Model is required"):
        analyzer.analyze_items([_item()])


def test_url_source_custom_headers_and_parameters():
    store = MappingCredentialStore(
        {
            "openrouter": {"api_key": "or", "http_referer": "https://app.example"},
        }
    )
    transport = FakeTransport(CHAT_RESPONSE)
    config = AppConfig(
        model="m",
        manual_model_id="override",
        image_source=SourceKind.URL,
        image_url="https://example.com/cat.jpg",
        custom_headers={"authorization": "Bearer nope", "X-Trace": "t"},
        additional_parameters='{"seed": 3}',
        response_format="json_object",
    )

    VisionAnalyzer(config, store, transport=transport).analyze_items([WorkItem()])

    call = transport.calls[0]
    assert call["headers"]["Authorization"] == "Bearer or"
    assert call["headers"]["X-Trace"] == "t"
    assert call["headers"]["HTTP-Referer"] == "https://app.example"
    assert call["body"]["model"] == "override"
    assert call["body"]["seed"] == 3
    assert call["body"]["response_format"] == {"type": "json_object"}
    assert call["body"]["messages"][-1]["content"][1]["image_url"]["url"] == "https://example.com/cat.jpg"


def test_custom_provider_base_url_and_per_item_options():
    store = MappingCredentialStore(
        {"universal": {"provider": "custom", "base_url": "http://localhost:11434/v1"}}
    )
    transport = FakeTransport(CHAT_RESPONSE, CHAT_RESPONSE)
    base = AppConfig(model="llava", image_source=SourceKind.BASE64)
    encoded = base64.b64encode(_png_bytes()).decode("ascii")
    progress: list[tuple[int, int]] = []

    def options_for(index, item):
        return base.model_copy(update={"base64_data": item.json["image"], "prompt": f"item {index}"})

    VisionAnalyzer(base, store, transport=transport).analyze_items(
        [WorkItem(json={"image": encoded}), WorkItem(json={"image": encoded})],
        options_for=options_for,
        progress_callback=lambda current, total, item: progress.append((current, total)),
    )

    assert [call["url"] for call in transport.calls] == [
        "http://localhost:11434/v1/chat/completions"
    ] * 2
    assert "Authorization" not in transport.calls[0]["headers"]
    assert transport.calls[1]["body"]["messages"][-1]["content"][0]["text"] == "item 1"
    assert progress == [(1, 2), (2, 2)]
