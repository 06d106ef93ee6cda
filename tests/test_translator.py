import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from captioner.exceptions import MalformedResponseError, PermanentServiceError, TransientServiceError
from captioner.translator import OpenAITranslator, parse_translations

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeCompletions:
    def __init__(self, outcome):
        self.outcome = outcome
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def openai_translator(outcome):
    completions = FakeCompletions(outcome)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAITranslator(client, model_name="gpt-4o-mini"), completions


@pytest.mark.parametrize("content", [
    '{"translations": ["a", "b"]}',
    '```json\n{\n  "translations": ["a", "b"]\n}\n```',
    'Here is your result:\n{"translations": ["a", "b"]}\nThanks',
    '["a", "b"]',
])
def test_parse_translations_is_tolerant_of_wrapping(content):
    assert parse_translations(content) == ["a", "b"]


@pytest.mark.parametrize("content", [
    "",
    "no json here",
    '{"result": ["a"]}',
    '{"translations": "a"}',
    '{"translations": ["a", 2]}',
])
def test_parse_translations_rejects_wrong_shapes(content):
    with pytest.raises(MalformedResponseError):
        parse_translations(content)


def test_batch_request_asks_for_strict_json():
    translator, completions = openai_translator(chat_response('{"translations": ["你好", "世界"]}'))

    assert translator.translate_batch(["こんにちは", "世界"], "ja", "zh-TW") == ["你好", "世界"]

    request = completions.requests[0]
    assert request["model"] == "gpt-4o-mini"
    assert request["response_format"] == {"type": "json_object"}
    payload = json.loads(request["messages"][1]["content"])
    assert payload["items"] == ["こんにちは", "世界"]
    assert payload["target_language"] == "zh-TW"


def test_batch_length_is_not_checked_by_the_request_layer():
    translator, _ = openai_translator(chat_response('{"translations": ["only one"]}'))

    assert translator.translate_batch(["a", "b"], "ja", "zh-TW") == ["only one"]


def test_single_line_request_returns_plain_text():
    translator, completions = openai_translator(chat_response('  "你好"  '))

    assert translator.translate_text("こんにちは", "ja", "zh-TW") == "你好"
    assert "response_format" not in completions.requests[0]


def test_rate_limit_maps_to_transient_error():
    error = openai.RateLimitError("slow down", response=httpx.Response(429, request=REQUEST), body=None)
    translator, _ = openai_translator(error)

    with pytest.raises(TransientServiceError) as exc_info:
        translator.translate_batch(["a"], "ja", "zh-TW")
    assert exc_info.value.status_code == 429


def test_auth_error_maps_to_permanent_error():
    error = openai.AuthenticationError("bad key", response=httpx.Response(401, request=REQUEST), body=None)
    translator, _ = openai_translator(error)

    with pytest.raises(PermanentServiceError) as exc_info:
        translator.translate_batch(["a"], "ja", "zh-TW")
    assert exc_info.value.status_code == 401


def test_missing_choices_is_malformed():
    translator, _ = openai_translator(SimpleNamespace(choices=[]))

    with pytest.raises(MalformedResponseError):
        translator.translate_batch(["a"], "ja", "zh-TW")
