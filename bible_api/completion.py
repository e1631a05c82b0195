"""
Chat completions

complete() returns one buffered answer; stream_complete() relays the
model's output fragment by fragment as it arrives.
"""

from typing import Any, AsyncIterator, Optional, Sequence

import httpx
import openai
from langsmith import traceable
from openai import AsyncOpenAI

from bible_api.config import LLM_MODEL
from bible_api.errors import UpstreamError
from bible_api.log import get_logger
from bible_api.models import PromptMessage
from bible_api.sse import DataFrame, DoneFrame, MalformedFrame, iter_frames

logger = get_logger(__name__)


def _delta_content(payload: Any) -> Optional[str]:
    """Pull choices[0].delta.content out of a streamed chunk, if present"""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


class CompletionClient:
    def __init__(self, client: AsyncOpenAI, model: str = LLM_MODEL):
        self.client = client
        self.model = model

    @traceable(run_type="llm", name="generate_completion")
    async def complete(
        self,
        messages: Sequence[PromptMessage],
        temperature: float,
        max_tokens: int,
        fallback: str = "No response generated",
    ) -> str:
        logger.info(f"Generating response with {self.model}...")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[m.model_dump() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIStatusError as e:
            logger.error(f"Error generating response with OpenAI: {e.status_code} {e.body}")
            raise UpstreamError("openai", e.message, e.status_code, e.body) from e
        except openai.APIError as e:
            logger.error(f"Error generating response with OpenAI: {e}")
            raise UpstreamError("openai", str(e)) from e

        if not response.choices:
            return fallback
        return response.choices[0].message.content or fallback

    async def stream_complete(
        self,
        messages: Sequence[PromptMessage],
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """Yield text fragments in arrival order.

        Raises UpstreamError only if the stream cannot be opened. If the
        upstream drops mid-stream the sequence just ends, so callers must not
        assume the text is complete. Closing the iterator closes the
        upstream response.
        """
        logger.info(f"Streaming response with {self.model}...")
        opened = False
        fragments = 0
        try:
            async with self.client.chat.completions.with_streaming_response.create(
                model=self.model,
                messages=[m.model_dump() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            ) as response:
                opened = True
                async for frame in iter_frames(response.iter_bytes()):
                    if isinstance(frame, DoneFrame):
                        break
                    if isinstance(frame, MalformedFrame):
                        logger.debug(f"Skipping malformed stream chunk: {frame.reason}")
                        continue
                    if isinstance(frame, DataFrame):
                        content = _delta_content(frame.payload)
                        if content:
                            fragments += 1
                            yield content
        except openai.APIStatusError as e:
            logger.error(f"OpenAI rejected the stream: {e.status_code} {e.body}")
            raise UpstreamError("openai", e.message, e.status_code, e.body) from e
        except (openai.APIError, httpx.HTTPError) as e:
            if not opened:
                logger.error(f"Could not open OpenAI stream: {e}")
                raise UpstreamError("openai", str(e)) from e
            logger.warning(f"Upstream stream ended early after {fragments} fragments: {e}")
            return

        logger.info(f"Stream finished ({fragments} fragments)")
