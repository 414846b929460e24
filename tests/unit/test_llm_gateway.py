"""Unit tests for the vendor gateway using httpx.MockTransport"""

import json
import httpx
import pytest
from xiaoe_gateway.config import Settings
from xiaoe_gateway.domain.exceptions import (
    MalformedResponseError,
    SchemaMismatchError,
    UnsupportedModelError,
    UpstreamUnavailableError,
)
from xiaoe_gateway.infrastructure.clients.llm import (
    ChatCompletionsAdapter,
    GeminiAdapter,
    GenerationGateway,
    build_adapters,
)

COMMENTS_JSON = json.dumps(
    [{"studentName": "张三", "intro": "张三很棒。", "body": [{"source": "认真", "text": "你很认真。"}], "conclusion": "加油！"}],
    ensure_ascii=False,
)


def gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def chat_body(text: str) -> dict:
    return {"choices": [{"message": {"content": text}}]}


def make_gateway(handler) -> GenerationGateway:
    config = Settings(gemini_api_key="g-key", deepseek_api_key="d-key", openai_api_key="")
    return GenerationGateway(build_adapters(config), timeout=1.0, transport=httpx.MockTransport(handler))


async def test_gemini_request_shape_and_comment_parsing():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_body(COMMENTS_JSON))

    comments = await make_gateway(handler).invoke("gemini", "prompt text", expect_strings=False)

    assert comments[0].student_name == "张三"
    assert comments[0].body[0].text == "你很认真。"
    assert seen["url"].endswith(":generateContent")
    assert "key=" not in seen["url"]
    assert seen["headers"]["x-goog-api-key"] == "g-key"
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "prompt text"
    assert seen["body"]["generationConfig"]["responseSchema"]["items"]["required"] == [
        "studentName",
        "intro",
        "body",
        "conclusion",
    ]


async def test_deepseek_json_object_mode_with_nested_array():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=chat_body('{"alternatives": ["一", "二"]}'))

    result = await make_gateway(handler).invoke("deepseek", "rephrase", expect_strings=True)

    assert result == ["一", "二"]
    assert seen["url"] == "https://api.deepseek.com/chat/completions"
    assert seen["auth"] == "Bearer d-key"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert seen["body"]["model"] == "deepseek-chat"


async def test_unknown_model_is_unsupported():
    gateway = make_gateway(lambda request: httpx.Response(200))
    with pytest.raises(UnsupportedModelError):
        await gateway.invoke("claude-9000", "p", expect_strings=True)


async def test_vendor_without_key_is_unavailable():
    calls = []
    gateway = make_gateway(lambda request: calls.append(request) or httpx.Response(200))

    with pytest.raises(UpstreamUnavailableError, match="not configured"):
        await gateway.invoke("openai", "p", expect_strings=True)
    assert calls == []


@pytest.mark.parametrize("status", [401, 429, 500, 503])
async def test_non_2xx_is_upstream_unavailable(status):
    gateway = make_gateway(lambda request: httpx.Response(status, json={"error": "nope"}))
    with pytest.raises(UpstreamUnavailableError, match=str(status)):
        await gateway.invoke("gemini", "p", expect_strings=False)


async def test_timeout_is_upstream_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamUnavailableError, match="timeout"):
        await make_gateway(handler).invoke("gemini", "p", expect_strings=False)


async def test_connection_error_is_upstream_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamUnavailableError):
        await make_gateway(handler).invoke("deepseek", "p", expect_strings=False)


async def test_missing_answer_field_is_malformed():
    gateway = make_gateway(lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(MalformedResponseError):
        await gateway.invoke("gemini", "p", expect_strings=False)


async def test_non_json_body_is_malformed():
    gateway = make_gateway(lambda request: httpx.Response(200, text="<html>gateway error</html>"))
    with pytest.raises(MalformedResponseError):
        await gateway.invoke("gemini", "p", expect_strings=False)


async def test_wrong_item_shape_is_schema_mismatch():
    gateway = make_gateway(lambda request: httpx.Response(200, json=chat_body('[{"studentName": "A"}]')))
    with pytest.raises(SchemaMismatchError):
        await gateway.invoke("deepseek", "p", expect_strings=False)


def test_vendor_status_reports_configured_keys():
    gateway = make_gateway(lambda request: httpx.Response(200))
    assert gateway.vendor_status() == {"gemini": True, "deepseek": True, "openai": False}


def test_adapters_select_request_schema():
    gemini = GeminiAdapter("k", "gemini-x", "https://example.test/v1beta")
    strings = gemini.build_request("p", expect_strings=True)
    assert strings.payload["generationConfig"]["responseSchema"] == {"type": "ARRAY", "items": {"type": "STRING"}}

    openai = ChatCompletionsAdapter("openai", "k", "gpt-x", "https://api.openai.com/v1/")
    assert openai.build_request("p", expect_strings=False).url == "https://api.openai.com/v1/chat/completions"
