import asyncio
import json

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from atlas_assistant.domain.errors import (
    CompletionProviderError,
    CompletionTransportError,
    ConfigurationError,
    MalformedCompletionError,
)
from atlas_assistant.infrastructure.config.settings import Settings
from atlas_assistant.infrastructure.llm.completion_service import to_chat_payload
from atlas_assistant.infrastructure.llm.openrouter_client import OpenRouterClient

MESSAGES = [
    SystemMessage(content="system prompt"),
    HumanMessage(content="earlier question"),
    AIMessage(content="earlier answer"),
    HumanMessage(content="How do I refund a customer?"),
]


def make_client(handler) -> OpenRouterClient:
    return OpenRouterClient(
        api_key="sk-test",
        base_url="https://openrouter.test/api/v1/chat/completions",
        model="test/model",
        temperature=0.2,
        max_tokens=256,
        site_url="http://localhost:3000",
        site_name="Atlas Chatbot",
        transport=httpx.MockTransport(handler)
    )


def run(client: OpenRouterClient):
    async def scenario():
        try:
            return await client.complete(MESSAGES)
        finally:
            await client.aclose()

    return asyncio.run(scenario())


def completion_body(content="answer", finish_reason="stop", **message_extra):
    return {"choices": [{"message": {"role": "assistant", "content": content, **message_extra}, "finish_reason": finish_reason}]}


def test_to_chat_payload_maps_roles() -> None:
    assert [m["role"] for m in to_chat_payload(MESSAGES)] == ["system", "user", "assistant", "user"]


def test_request_shape_and_parsed_result() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion_body("Part one", "length"))

    result = run(make_client(handler))

    assert seen["headers"]["Authorization"] == "Bearer sk-test"
    assert seen["headers"]["HTTP-Referer"] == "http://localhost:3000"
    assert seen["headers"]["X-Title"] == "Atlas Chatbot"
    assert seen["body"]["model"] == "test/model"
    assert seen["body"]["max_tokens"] == 256
    assert seen["body"]["temperature"] == 0.2
    assert seen["body"]["messages"][-1] == {"role": "user", "content": "How do I refund a customer?"}

    assert result.content == "Part one"
    assert result.finish_reason == "length"
    assert result.was_truncated is True


def test_reasoning_side_channel_is_kept() -> None:
    def handler(request):
        return httpx.Response(200, json=completion_body(None, "stop", reasoning="Action: addLeadV1"))

    result = run(make_client(handler))

    assert result.content == ""
    assert result.is_empty is True
    assert result.reasoning == "Action: addLeadV1"


def test_missing_finish_reason_is_unknown() -> None:
    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

    result = run(make_client(handler))

    assert result.finish_reason == "unknown"
    assert result.was_truncated is False


def test_error_body_is_provider_error() -> None:
    def handler(request):
        return httpx.Response(200, json={"error": {"message": "Rate limit exceeded", "code": 429}})

    with pytest.raises(CompletionProviderError) as excinfo:
        run(make_client(handler))

    assert excinfo.value.code == "429"
    assert "Rate limit exceeded" in str(excinfo.value)


def test_http_failure_is_transport_error() -> None:
    def handler(request):
        return httpx.Response(401, text="invalid key")

    with pytest.raises(CompletionTransportError) as excinfo:
        run(make_client(handler))

    assert excinfo.value.status_code == 401
    assert "invalid key" in str(excinfo.value)


def test_network_failure_is_transport_error() -> None:
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CompletionTransportError):
        run(make_client(handler))


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>"),
    httpx.Response(200, json=[]),
    httpx.Response(200, json={"choices": []}),
    httpx.Response(200, json={"choices": [{"finish_reason": "stop"}]}),
])
def test_unexpected_bodies_are_malformed(response) -> None:
    with pytest.raises(MalformedCompletionError):
        run(make_client(lambda request: response))


def test_from_settings_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        OpenRouterClient.from_settings(Settings(openrouter_api_key="your-openrouter-api-key-here"))

    client = OpenRouterClient.from_settings(Settings(openrouter_api_key="sk-real", openrouter_model="m"))
    assert client.model == "m"
    asyncio.run(client.aclose())
