import base64

import httpx
import pytest

from companion_core.domain.exceptions import ApiError, AuthError, NetworkError, ParseError, RateLimitError
from companion_core.domain.models import CompletionMessage, CompletionRequest, ContentPart
from companion_core.infrastructure.storage.credentials import FileCredentialStore
from companion_core.providers.openai_client import OpenAICompatibleClient
from companion_core.providers.registry import ANALYSIS_MODEL, CHAT_MODEL, GLM_CONFIG, KIMI_CONFIG


class SettingsStub:
    openai_api_key = "sk-test-key-123"
    openai_base_url = "https://api.openai.com/v1"
    kimi_api_key = None
    kimi_base_url = None
    glm_api_key = None
    glm_base_url = None
    http_timeout = 1.0


class NoKeySettings(SettingsStub):
    openai_api_key = None


def _req(model=CHAT_MODEL, content="hi", max_tokens=None):
    return CompletionRequest(
        provider="openai",
        model=model,
        messages=[CompletionMessage(role="user", content=content)],
        max_tokens=max_tokens,
    )


def _install_client(monkeypatch, resp=None, error=None):
    """替换 httpx.Client，记录请求参数。"""

    captured = {"constructed": 0}

    class Client:
        def __init__(self, *a, **kw):
            captured["constructed"] += 1
            captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None):
            captured["url"] = url
            captured["json"] = json
            captured["headers"] = headers
            if error is not None:
                raise error
            return resp

    monkeypatch.setattr("httpx.Client", Client)
    return captured


class Resp:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("Expecting value")
        return self._data


def _ok(content="ok"):
    return Resp(
        data={
            "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
        }
    )


def test_complete_parses_content_and_usage(monkeypatch):
    captured = _install_client(monkeypatch, _ok("hello"))
    res = OpenAICompatibleClient(SettingsStub()).complete(_req(max_tokens=1000))

    assert res.content == "hello"
    assert res.has_content is True
    assert res.usage.total_tokens == 5
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer sk-test-key-123"
    assert captured["json"]["model"] == "gpt-4.1-2025-04-14"
    assert captured["json"]["max_tokens"] == 1000
    assert captured["json"]["messages"] == [{"role": "user", "content": "hi"}]


def test_analysis_request_omits_max_tokens(monkeypatch):
    captured = _install_client(monkeypatch, _ok())
    OpenAICompatibleClient(SettingsStub()).complete(_req(model=ANALYSIS_MODEL))
    assert "max_tokens" not in captured["json"]
    assert captured["json"]["model"] == "gpt-4o"


def test_image_part_is_sent_as_data_url(monkeypatch):
    captured = _install_client(monkeypatch, _ok())
    content = [ContentPart.of_text("what is this"), ContentPart.of_image(b"\x89PNG")]
    OpenAICompatibleClient(SettingsStub()).complete(_req(content=content))

    parts = captured["json"]["messages"][0]["content"]
    assert parts[0] == {"type": "text", "text": "what is this"}
    encoded = base64.b64encode(b"\x89PNG").decode("ascii")
    assert parts[1] == {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}}


def test_server_error_carries_status_and_body(monkeypatch):
    _install_client(monkeypatch, Resp(status_code=500, text="upstream exploded"))
    with pytest.raises(ApiError) as ei:
        OpenAICompatibleClient(SettingsStub()).complete(_req())
    assert ei.value.http_status == 500
    assert "upstream exploded" in ei.value.message


def test_rate_limit_is_a_network_failure(monkeypatch):
    _install_client(monkeypatch, Resp(status_code=429, text="slow down"))
    with pytest.raises(RateLimitError) as ei:
        OpenAICompatibleClient(SettingsStub()).complete(_req())
    assert isinstance(ei.value, NetworkError)
    assert ei.value.http_status == 429


def test_missing_content_field_is_reported(monkeypatch):
    _install_client(monkeypatch, Resp(data={"choices": [{"message": {"role": "assistant"}}]}))
    res = OpenAICompatibleClient(SettingsStub()).complete(_req())
    assert res.has_content is False
    assert res.content == ""


def test_empty_choices_is_reported(monkeypatch):
    _install_client(monkeypatch, Resp(data={"choices": []}))
    res = OpenAICompatibleClient(SettingsStub()).complete(_req())
    assert res.has_content is False


def test_non_json_body_raises_parse_error(monkeypatch):
    _install_client(monkeypatch, Resp(status_code=200, data=None, text="<html>"))
    with pytest.raises(ParseError):
        OpenAICompatibleClient(SettingsStub()).complete(_req())


def test_connection_error_raises_network_error(monkeypatch):
    _install_client(monkeypatch, error=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError) as ei:
        OpenAICompatibleClient(SettingsStub()).complete(_req())
    assert ei.value.code == "NETWORK_ERROR"


def test_missing_key_fails_before_network(monkeypatch):
    captured = _install_client(monkeypatch, _ok())
    client = OpenAICompatibleClient(NoKeySettings())
    assert client.has_credentials() is False
    with pytest.raises(AuthError):
        client.complete(_req())
    assert captured["constructed"] == 0


def test_key_falls_back_to_credential_file(monkeypatch, tmp_path):
    captured = _install_client(monkeypatch, _ok())
    creds = FileCredentialStore(tmp_path / "api_key")
    creds.save("sk-from-file")
    client = OpenAICompatibleClient(NoKeySettings(), credentials=creds)
    assert client.has_credentials() is True
    client.complete(_req())
    assert captured["headers"]["Authorization"] == "Bearer sk-from-file"


@pytest.mark.parametrize(
    "provider, url, model",
    [
        (KIMI_CONFIG, "https://api.moonshot.cn/v1/chat/completions", "kimi-k2-turbo-preview"),
        (GLM_CONFIG, "https://open.bigmodel.cn/api/paas/v4/chat/completions", "glm-4.6"),
    ],
)
def test_other_providers_share_the_protocol(monkeypatch, provider, url, model):
    class Stub(SettingsStub):
        kimi_api_key = "kimi-key-12345"
        glm_api_key = "glm-key-12345"

    captured = _install_client(monkeypatch, _ok())
    client = OpenAICompatibleClient(Stub(), provider)
    assert client.name == provider.name
    client.complete(_req())
    assert captured["url"] == url
    assert captured["json"]["model"] == model
