"""Embedding and completion clients against the real OpenAI SDK over a mock transport."""

import json

import httpx
import pytest
from openai import AsyncOpenAI

from bible_api.completion import CompletionClient
from bible_api.embeddings import EmbeddingClient
from bible_api.errors import UpstreamError
from bible_api.models import PromptMessage

MESSAGES = [
    PromptMessage(role="system", content="You are Bible Search."),
    PromptMessage(role="user", content="What does the Bible say about love?"),
]


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in the given chunks, optionally failing at the end"""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.closed = True


def sse(content):
    return f'data: {json.dumps({"choices": [{"index": 0, "delta": {"content": content}}]})}\n\n'.encode()


def openai_client(handler):
    return AsyncOpenAI(
        api_key="test-key",
        base_url="https://api.openai.test/v1",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def chat_completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4.1-mini-2025-04-14",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


@pytest.mark.asyncio
async def test_stream_complete_yields_fragments_in_order():
    body = sse("## Love") + sse("") + b"data: {broken\n\n" + sse(" is patient [1]") + b"data: [DONE]\n\n"
    stream = ChunkedStream([body[:13], body[13:50], body[50:]])
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    client = CompletionClient(openai_client(handler))
    fragments = [f async for f in client.stream_complete(MESSAGES, temperature=0.7, max_tokens=300)]

    assert fragments == ["## Love", " is patient [1]"]
    assert requests[0]["stream"] is True
    assert requests[0]["temperature"] == 0.7
    assert requests[0]["max_tokens"] == 300
    assert requests[0]["messages"][1]["role"] == "user"


@pytest.mark.asyncio
async def test_stream_stops_at_done_sentinel():
    body = sse("Amen") + b"data: [DONE]\n\n" + sse("ignored")

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=ChunkedStream([body]))

    client = CompletionClient(openai_client(handler))
    fragments = [f async for f in client.stream_complete(MESSAGES, temperature=0.8, max_tokens=250)]

    assert fragments == ["Amen"]


@pytest.mark.asyncio
async def test_rejected_stream_raises_upstream_error():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "Incorrect API key", "type": "invalid_request_error"}})

    client = CompletionClient(openai_client(handler))

    with pytest.raises(UpstreamError) as exc_info:
        async for _ in client.stream_complete(MESSAGES, temperature=0.7, max_tokens=300):
            pass

    assert exc_info.value.status_code == 401
    assert exc_info.value.service == "openai"


@pytest.mark.asyncio
async def test_upstream_disconnect_ends_sequence_without_error():
    stream = ChunkedStream([sse("Lord, ")], error=httpx.ReadError("connection reset"))

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    client = CompletionClient(openai_client(handler))
    fragments = [f async for f in client.stream_complete(MESSAGES, temperature=0.8, max_tokens=250)]

    assert fragments == ["Lord, "]


@pytest.mark.asyncio
async def test_closing_early_closes_upstream_response():
    stream = ChunkedStream([sse("one"), sse("two"), sse("three"), b"data: [DONE]\n\n"])

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    fragments = CompletionClient(openai_client(handler)).stream_complete(MESSAGES, temperature=0.7, max_tokens=300)
    assert await fragments.__anext__() == "one"
    await fragments.aclose()

    assert stream.closed


@pytest.mark.asyncio
async def test_complete_returns_message_content():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200, json=chat_completion("## God's Love\n- **Love** endures [1]"))

    client = CompletionClient(openai_client(handler))
    text = await client.complete(MESSAGES, temperature=0.7, max_tokens=300)

    assert text.startswith("## God's Love")
    assert "stream" not in requests[0] or requests[0]["stream"] is False


@pytest.mark.asyncio
async def test_complete_uses_fallback_for_empty_content():
    def handler(request):
        return httpx.Response(200, json=chat_completion(None))

    client = CompletionClient(openai_client(handler))

    assert await client.complete(MESSAGES, 0.8, 250, fallback="Unable to generate prayer at this time.") == \
        "Unable to generate prayer at this time."


@pytest.mark.asyncio
async def test_complete_failure_raises_upstream_error():
    def handler(request):
        return httpx.Response(500, json={"error": {"message": "server exploded", "type": "server_error"}})

    with pytest.raises(UpstreamError) as exc_info:
        await CompletionClient(openai_client(handler)).complete(MESSAGES, 0.7, 300)

    assert exc_info.value.status_code == 500


def embedding_response(vector):
    return {
        "object": "list",
        "data": [{"object": "embedding", "index": 0, "embedding": vector}],
        "model": "text-embedding-3-small",
        "usage": {"prompt_tokens": 4, "total_tokens": 4},
    }


@pytest.mark.asyncio
async def test_embed_returns_vector():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200, json=embedding_response([0.25] * 1536))

    vector = await EmbeddingClient(openai_client(handler)).embed("love your neighbor")

    assert len(vector) == 1536
    assert vector[0] == 0.25
    assert requests[0]["model"] == "text-embedding-3-small"
    assert requests[0]["input"] == "love your neighbor"


@pytest.mark.asyncio
async def test_embed_rejects_wrong_dimension():
    def handler(request):
        return httpx.Response(200, json=embedding_response([0.1, 0.2]))

    with pytest.raises(UpstreamError):
        await EmbeddingClient(openai_client(handler)).embed("hope")


@pytest.mark.asyncio
async def test_embed_http_error_carries_status_and_body():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "Rate limit reached", "type": "rate_limit"}})

    with pytest.raises(UpstreamError) as exc_info:
        await EmbeddingClient(openai_client(handler)).embed("peace")

    assert exc_info.value.status_code == 429
    assert exc_info.value.body is not None
