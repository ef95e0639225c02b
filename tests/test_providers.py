import json

import pytest
import requests

import config
import providers
import venice
from conftest import chat_response
from errors import EmptyResponseError, MissingApiKeyError, ProviderError, ProviderTimeoutError

IDENTIFICATION = {
    "items": [{"name": "Rice", "quantity": 1, "unit": "cup", "estimatedGrams": 180, "preparation": "steamed",
               "confidence": 90}],
    "overallConfidence": 88,
    "visualObservations": ["White rice in a bowl"],
}

NUTRITION = {
    "title": "Steamed rice",
    "confidence": 0.9,
    "servingDescription": "1 cup (180 g)",
    "totalCalories": 234.5,
    "macros": {
        "protein": {"grams": 4.4, "calories": 17.6},
        "carbs": {"grams": 51.2, "calories": 204.8},
        "fat": {"grams": 0.5, "calories": 4.5},
    },
    "items": [{"name": "Rice", "quantity": "1.5 cups", "calories": 234.5}],
    "notes": ["Pair with a protein."],
}


class FakeResponse:
    def __init__(self, payload=None, status=200, text=None, headers=None):
        self.payload = payload
        self.status_code = status
        self.ok = status < 400
        self.text = text if text is not None else json.dumps(payload)
        self.headers = headers or {"content-type": "application/json"}

    def json(self):
        return self.payload


@pytest.fixture(autouse=True)
def _fresh_clients(monkeypatch):
    monkeypatch.setattr(providers, "_clients", {})


@pytest.fixture
def minimax(monkeypatch):
    monkeypatch.setattr(config, "MINIMAX_API_KEY", "mm-key")
    sent = []

    def install(*replies):
        def post(url, **kwargs):
            sent.append((url, kwargs))
            reply = replies[len(sent) - 1]
            if isinstance(reply, Exception):
                raise reply
            return reply
        monkeypatch.setattr(providers.requests, "post", post)
        return sent
    return install


def test_get_config_and_configured(monkeypatch):
    assert providers.get_config("gemini-3-flash") is providers.GEMINI_FLASH_CONFIG
    assert providers.get_config("nope") is None
    assert not providers.is_configured(providers.GROK_41_CONFIG)
    monkeypatch.setattr(config, "GROK_API_KEY", "xai")
    assert providers.is_configured(providers.GROK_41_CONFIG)


def test_missing_key():
    with pytest.raises(MissingApiKeyError, match="gemini-3-flash API key not configured"):
        providers.call_model_api(providers.GEMINI_FLASH_CONFIG, "b64", "prompt")


def test_unsupported_model(monkeypatch):
    monkeypatch.setattr(config, "VENICE_API_KEY", "k")
    cfg = dict(providers.VENICE_CONFIG, name="mystery")
    with pytest.raises(ValueError):
        providers.call_model_api(cfg, "b64", "prompt")


def test_minimax_request_shape(minimax):
    sent = minimax(FakeResponse(chat_response("{}")))
    providers.call_model_api(providers.MINIMAX_M21_CONFIG, "QUJD", "describe")
    url, kwargs = sent[0]
    assert url == providers.MINIMAX_M21_CONFIG["endpoint"]
    assert kwargs["headers"]["Authorization"] == "Bearer mm-key"
    assert kwargs["timeout"] == 25.0
    content = kwargs["json"]["messages"][0]["content"]
    assert content[1]["image_url"]["url"] == "data:image/jpeg;base64,QUJD"


def test_text_only_request_has_no_image(minimax):
    sent = minimax(FakeResponse(chat_response("{}")))
    providers.call_model_api(providers.MINIMAX_M21_CONFIG, "", "just text", is_image_request=False)
    assert sent[0][1]["json"]["messages"] == [{"role": "user", "content": "just text"}]


def test_minimax_timeout(minimax):
    minimax(requests.Timeout("slow"))
    with pytest.raises(ProviderTimeoutError, match="minimax-m21 API request timed out after 25000ms"):
        providers.call_model_api(providers.MINIMAX_M21_CONFIG, "b64", "p")


def test_minimax_http_error(minimax):
    minimax(FakeResponse(status=503, text="busy"))
    with pytest.raises(ProviderError, match=r"minimax-m21 API error \(503\): busy") as exc:
        providers.call_model_api(providers.MINIMAX_M21_CONFIG, "b64", "p")
    assert exc.value.status == 503


def test_identify_and_nutrition_with_minimax(minimax):
    ident = dict(IDENTIFICATION, complementaryItems=["Soy sauce"])
    del ident["overallConfidence"]
    sent = minimax(
        FakeResponse(chat_response("```json\n" + json.dumps(ident) + "\n```")),
        FakeResponse(chat_response(json.dumps(NUTRITION))),
    )
    identification = providers.identify_with(providers.MINIMAX_M21_CONFIG, "b64")
    assert identification["overallConfidence"] == 80
    assert identification["items"][0]["estimatedGrams"] == 180
    assert "different perspective" in sent[0][1]["json"]["messages"][0]["content"][0]["text"]

    summary = providers.analyze_nutrition_with(providers.MINIMAX_M21_CONFIG, identification)
    assert summary["confidence"] == 90
    assert summary["totalCalories"] == 235
    assert summary["macros"]["carbs"] == {"grams": 51, "calories": 205}
    assert summary["items"][0]["quantity"] == "1.5 cups"
    assert summary["analysis"]["visualObservations"] == ["White rice in a bowl"]
    assert summary["notes"][-1] == "Possibly also present: Soy sauce"
    assert '"name": "Rice"' in sent[1][1]["json"]["messages"][0]["content"]


def test_empty_provider_answer(minimax):
    minimax(FakeResponse(chat_response("")))
    with pytest.raises(EmptyResponseError, match="MiniMax M21 returned no content"):
        providers.identify_with(providers.MINIMAX_M21_CONFIG, "b64")


def test_gemini_uses_genai_client(monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", "g-key")
    seen = {}

    class FakeModels:
        def generate_content(self, model, contents, config):
            seen.update(model=model, contents=contents, config=config)
            return type("Resp", (), {"text": json.dumps(IDENTIFICATION)})()

    class FakeGenaiClient:
        def __init__(self, api_key, http_options):
            seen["api_key"] = api_key
            seen["timeout"] = http_options.timeout
            self.models = FakeModels()

    monkeypatch.setattr(providers.genai, "Client", FakeGenaiClient)
    identification = providers.identify_with(providers.GEMINI_FLASH_CONFIG, "QUJD")
    assert identification["overallConfidence"] == 88
    assert seen["api_key"] == "g-key"
    assert seen["timeout"] == 30000
    assert seen["model"] == config.GEMINI_MODEL
    assert seen["config"].response_mime_type == "application/json"
    assert len(seen["contents"]) == 2


def test_grok_uses_openai_sdk(monkeypatch):
    monkeypatch.setattr(config, "GROK_API_KEY", "xai-key")
    seen = {}

    class FakeCompletions:
        def create(self, **kwargs):
            seen.update(kwargs)
            return chat_response(json.dumps(NUTRITION))

    class FakeOpenAI:
        def __init__(self, api_key, base_url, timeout, max_retries):
            seen.update(api_key=api_key, base_url=base_url, timeout=timeout)
            self.chat = type("Chat", (), {"completions": FakeCompletions()})()

    monkeypatch.setattr(providers, "OpenAI", FakeOpenAI)
    data = providers.call_model_api(providers.GROK_41_CONFIG, "", "prompt", is_image_request=False)
    assert data["choices"][0]["message"]["content"].startswith("{")
    assert seen["base_url"] == "https://api.x.ai/v1"
    assert seen["max_tokens"] == 2048
    assert seen["temperature"] == 0.5


def test_proxy_venice_forwards_body(monkeypatch):
    sent = {}

    def post(url, **kwargs):
        sent.update(url=url, **kwargs)
        return FakeResponse({"id": "x"}, status=200)

    monkeypatch.setattr(providers.requests, "post", post)
    status, content_type, body = providers.proxy_venice(b'{"model": "m"}')
    assert status == 200
    assert content_type == "application/json"
    assert json.loads(body) == {"id": "x"}
    assert sent["data"] == b'{"model": "m"}'
    assert sent["headers"]["Authorization"] == "Bearer test-key"


def test_proxy_venice_without_key(monkeypatch):
    monkeypatch.setattr(config, "VENICE_API_KEY", "")
    assert providers.proxy_venice(b"{}") == (500, "text/plain", "Venice API key not configured")


def test_proxy_venice_network_failure(monkeypatch):
    def post(url, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(providers.requests, "post", post)
    status, content_type, body = providers.proxy_venice(b"{}")
    assert status == 500
    assert "refused" in body


def test_venice_goes_through_the_venice_client(monkeypatch):
    sent = []

    class FakeCompletions:
        def create(self, **kwargs):
            sent.append(kwargs)
            return chat_response("{}")

    fake = type("FakeVenice", (), {})()
    fake.chat = type("Chat", (), {"completions": FakeCompletions()})()
    monkeypatch.setattr(venice, "client", fake)

    data = providers.call_model_api(providers.VENICE_CONFIG, "QUJD", "describe")
    assert data["choices"][0]["message"]["content"] == "{}"
    kwargs = sent[0]
    assert kwargs["model"] == config.VENICE_VISION_MODEL
    assert kwargs["extra_body"] == {"venice_parameters": {"include_venice_system_prompt": True}}
    assert "venice_parameters" not in kwargs
    text_part, image_part = kwargs["messages"][0]["content"]
    assert text_part == {"type": "text", "text": "describe"}
    assert image_part["image_url"]["url"] == "data:image/jpeg;base64,QUJD"

    providers.call_model_api(providers.VENICE_CONFIG, "", "just text", is_image_request=False)
    assert sent[1]["messages"] == [{"role": "user", "content": "just text"}]


def test_grok_client_is_reused(monkeypatch):
    monkeypatch.setattr(config, "GROK_API_KEY", "xai-key")
    built = []

    class FakeCompletions:
        def create(self, **kwargs):
            return chat_response("{}")

    class FakeOpenAI:
        def __init__(self, **kwargs):
            built.append(kwargs)
            self.chat = type("Chat", (), {"completions": FakeCompletions()})()

    monkeypatch.setattr(providers, "OpenAI", FakeOpenAI)
    providers.call_model_api(providers.GROK_41_CONFIG, "", "one", is_image_request=False)
    providers.call_model_api(providers.GROK_41_CONFIG, "", "two", is_image_request=False)
    assert len(built) == 1
