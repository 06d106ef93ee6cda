import httpx
import openai
import pytest

from captioner.exceptions import ConfigurationError, PermanentServiceError, TransientServiceError
from captioner.openai_backend import build_openai_client, to_service_error

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def test_client_requires_an_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        build_openai_client({})


def test_client_disables_sdk_retries(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    client = build_openai_client({'openai_api_key': "sk-test", 'request_timeout': 30.0,
                                  'api_base_url': "http://localhost:8080/v1"})

    assert client.max_retries == 0
    assert str(client.base_url).startswith("http://localhost:8080/v1")


@pytest.mark.parametrize("status, expected", [
    (429, TransientServiceError),
    (500, TransientServiceError),
    (504, TransientServiceError),
    (400, PermanentServiceError),
    (403, PermanentServiceError),
])
def test_status_codes_map_onto_error_taxonomy(status, expected):
    error = openai.APIStatusError("boom", response=httpx.Response(status, request=REQUEST), body=None)

    mapped = to_service_error(error, "Translation request")

    assert isinstance(mapped, expected)
    assert mapped.status_code == status


def test_timeouts_are_transient():
    assert isinstance(to_service_error(openai.APITimeoutError(request=REQUEST), "x"), TransientServiceError)


def test_foreign_exceptions_are_not_mapped():
    assert to_service_error(ValueError("nope"), "x") is None
