import json
from decimal import Decimal
from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest

from shift_ocr_pipeline.core.config import PipelineConfig
from shift_ocr_pipeline.core.errors import EngineFailure
from shift_ocr_pipeline.core.llm import (
    DEFAULT_MODELS, LLMProvider, VisionExtractor, _create_client, build_prompt,
    entry_from_vision, parse_vision_response,
)
from shift_ocr_pipeline.core.models import ServiceType, SourceMethod
from shift_ocr_pipeline.core.ocr import validate_image

REPLY = {
    "entries": [
        {"date": "2025-09-18", "start_time": "9:21 AM", "end_time": "10:30 AM",
         "total_earnings": 30, "base_pay": None, "tips": None, "service_type": "logistics"},
        {"date": "2025-09-15", "start_time": "11:00 AM", "end_time": "1:00 PM",
         "total_earnings": "$99.00", "base_pay": 51.0, "tips": 48.0, "service_type": "Whole_Foods"},
    ]
}

FAKE_REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat/completions")


def fake_openai_client(reply=None, error=None):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client, calls


def fake_anthropic_client(reply=None, error=None):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        return SimpleNamespace(content=[SimpleNamespace(text=reply)])

    return SimpleNamespace(messages=SimpleNamespace(create=create)), calls


@pytest.fixture
def image(png_image):
    return validate_image(png_image)


# --------------- response parsing ---------------

def test_parse_vision_response_plain_json():
    assert len(parse_vision_response(json.dumps(REPLY))) == 2


def test_parse_vision_response_strips_code_fence():
    fenced = "```json\n" + json.dumps(REPLY, indent=2) + "\n```"
    assert len(parse_vision_response(fenced)) == 2


@pytest.mark.parametrize("text,cause", [
    ("Sorry, I cannot read this image.", "not valid JSON"),
    ("[1, 2]", "not an object"),
    ('{"shifts": []}', "no 'entries' key"),
    ('{"entries": {"date": "2025-09-18"}}', "'entries' is not a list"),
    ('{"entries": ["2025-09-18"]}', "entry 0 is not an object"),
])
def test_parse_vision_response_rejects_malformed_replies(text, cause):
    with pytest.raises(EngineFailure) as exc:
        parse_vision_response(text)
    assert exc.value.method == "vision"
    assert cause in exc.value.cause


def test_entry_from_vision_maps_fields():
    e = entry_from_vision(REPLY["entries"][1])
    assert e.source_method == SourceMethod.VISION
    assert e.date == "2025-09-15"
    assert (e.start_time, e.end_time) == ("11:00 AM", "1:00 PM")
    assert e.total_earnings == Decimal("99.00")
    assert e.base_pay == Decimal("51.00")
    assert e.tips == Decimal("48.00")
    assert e.service_type == ServiceType.WHOLE_FOODS
    assert e.hours_worked is None
    assert e.original_text == "2025-09-15 11:00 AM - 1:00 PM"


def test_entry_from_vision_tolerates_missing_and_unknown_values():
    e = entry_from_vision({"total_earnings": "n/a", "service_type": "rideshare"})
    assert e.date is None
    assert e.total_earnings is None
    assert e.service_type is None


def test_build_prompt_mentions_year_and_schema():
    prompt = build_prompt(2025)
    assert "assume 2025" in prompt
    assert '"entries"' in prompt


# --------------- VisionExtractor ---------------

def test_openai_extraction(image, today):
    client, calls = fake_openai_client(json.dumps(REPLY))
    extractor = VisionExtractor(PipelineConfig(api_key="test-key"), client=client)
    entries = extractor.extract(image, today=today)

    assert [e.date for e in entries] == ["2025-09-18", "2025-09-15"]
    assert entries[0].total_earnings == Decimal("30.00")
    assert len(calls) == 1
    call = calls[0]
    assert call["model"] == DEFAULT_MODELS[LLMProvider.OPENAI]
    assert call["response_format"] == {"type": "json_object"}
    image_part = call["messages"][0]["content"][1]
    assert image_part["type"] == "image_url"
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


def test_anthropic_extraction(image, today):
    client, calls = fake_anthropic_client("```json\n" + json.dumps(REPLY) + "\n```")
    config = PipelineConfig(llm_provider="anthropic", llm_model="claude-test", api_key="test-key")
    entries = VisionExtractor(config, client=client).extract(image, today=today)

    assert len(entries) == 2
    call = calls[0]
    assert call["model"] == "claude-test"
    source = call["messages"][0]["content"][0]["source"]
    assert source["type"] == "base64"
    assert source["media_type"] == "image/png"


def test_missing_api_key_fails_without_calling(image, today):
    client, calls = fake_openai_client(json.dumps(REPLY))
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(PipelineConfig(api_key=None), client=client).extract(image, today=today)
    assert "missing API key for openai" in exc.value.cause
    assert "OPENAI_API_KEY" in exc.value.cause
    assert calls == []


def test_azure_requires_endpoint(image, today):
    config = PipelineConfig(llm_provider="azure-openai", api_key="test-key")
    client, calls = fake_openai_client(json.dumps(REPLY))
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(config, client=client).extract(image, today=today)
    assert "AZURE_OPENAI_ENDPOINT" in exc.value.cause
    assert calls == []


def test_http_error_becomes_engine_failure(image, today):
    error = openai.APIStatusError(
        "Internal server error",
        response=httpx.Response(500, request=FAKE_REQUEST),
        body=None,
    )
    client, calls = fake_openai_client(error=error)
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(PipelineConfig(api_key="test-key"), client=client).extract(image, today=today)
    assert exc.value.cause == "HTTP 500 from openai: Internal server error"
    assert len(calls) == 1


def test_timeout_becomes_engine_failure(image, today):
    client, calls = fake_openai_client(error=openai.APITimeoutError(request=FAKE_REQUEST))
    config = PipelineConfig(api_key="test-key", vision_timeout=30.0)
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(config, client=client).extract(image, today=today)
    assert exc.value.cause == "request timed out after 30s"
    assert len(calls) == 1


def test_connection_error_becomes_engine_failure(image, today):
    client, _ = fake_anthropic_client(error=anthropic.APIConnectionError(request=FAKE_REQUEST))
    config = PipelineConfig(llm_provider="anthropic", api_key="test-key")
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(config, client=client).extract(image, today=today)
    assert exc.value.cause.startswith("could not connect to anthropic")


def test_unexpected_error_becomes_engine_failure(image, today):
    client, _ = fake_openai_client(error=RuntimeError("boom"))
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(PipelineConfig(api_key="test-key"), client=client).extract(image, today=today)
    assert exc.value.cause == "RuntimeError: boom"


def test_non_json_reply_becomes_engine_failure(image, today):
    client, _ = fake_openai_client("I see two shifts on this screen.")
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(PipelineConfig(api_key="test-key"), client=client).extract(image, today=today)
    assert "not valid JSON" in exc.value.cause


def test_empty_entries_is_a_failure(image, today):
    client, _ = fake_openai_client('{"entries": []}')
    with pytest.raises(EngineFailure) as exc:
        VisionExtractor(PipelineConfig(api_key="test-key"), client=client).extract(image, today=today)
    assert exc.value.cause == "model returned no entries"


def test_clients_are_built_without_retries():
    openai_client = _create_client(PipelineConfig(api_key="test-key"))
    assert isinstance(openai_client, openai.OpenAI)
    assert openai_client.max_retries == 0

    anthropic_client = _create_client(PipelineConfig(llm_provider="anthropic", api_key="test-key"))
    assert isinstance(anthropic_client, anthropic.Anthropic)
    assert anthropic_client.max_retries == 0
