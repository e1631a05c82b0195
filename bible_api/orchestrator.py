"""
Request orchestration

Both endpoints run the same single-pass pipeline:

    validate -> embed -> search -> enrich -> assemble prompt -> dispatch

Retrieval ends in one of two states. VerseContext carries usable verses
for the prompt; DegradedContext means the index found nothing (NO_MATCHES)
or found verses with no text (MISSING_TEXT). A degraded context is still a
successful request with a context-poor answer, never an error.

Dispatch is either buffered (one JSON payload) or streamed as SSE. Every
stream sends its context event first, then a priming ``{"content": ""}``,
then content fragments, an ``{"error"}`` event if the upstream fails, and
exactly one ``data: [DONE]``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Union

from bible_api.completion import CompletionClient
from bible_api.config import (
    PRAYER_MAX_TOKENS,
    PRAYER_TEMPERATURE,
    PRAYER_TOP_K,
    QUERY_MAX_TOKENS,
    QUERY_TEMPERATURE,
    QUERY_TOP_K,
)
from bible_api.embeddings import EmbeddingClient
from bible_api.enrich import VerseEnricher
from bible_api.errors import ValidationError
from bible_api.log import get_logger
from bible_api.models import (
    FallbackPrayerResponse,
    PrayerResponse,
    PromptMessage,
    QueryResponse,
    VerseReference,
)
from bible_api.prompts import (
    PRAYER_FALLBACK_TEXT,
    QUERY_MISSING_TEXT_RESPONSE,
    QUERY_NO_MATCHES_RESPONSE,
    build_prayer_messages,
    build_query_messages,
)
from bible_api.search import VerseSearchClient
from bible_api.sse import DONE_EVENT, format_event

logger = get_logger(__name__)

NO_MATCHES = "no_matches"
MISSING_TEXT = "missing_text"

DisconnectCheck = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class VerseContext:
    references: List[VerseReference]
    usable: List[VerseReference]


@dataclass(frozen=True)
class DegradedContext:
    references: List[VerseReference]
    reason: str
    usable: List[VerseReference] = field(default_factory=list)


RetrievalContext = Union[VerseContext, DegradedContext]


@dataclass(frozen=True)
class RequestPlan:
    """Everything decided before the first response byte goes out"""

    text: str
    context: RetrievalContext
    messages: Optional[List[PromptMessage]] = None
    # Set when the answer is fixed and the model is not called
    canned_response: Optional[str] = None


def require_text(value: Optional[str], message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value


class VerseRetriever:
    """Embed -> search -> enrich, ending in a RetrievalContext"""

    def __init__(self, embedder: EmbeddingClient, searcher: VerseSearchClient, enricher: VerseEnricher):
        self.embedder = embedder
        self.searcher = searcher
        self.enricher = enricher

    async def retrieve(self, text: str, top_k: int) -> RetrievalContext:
        embedding = await self.embedder.embed(text)
        references = await self.searcher.search(embedding, top_k=top_k)

        if not references:
            logger.info("No matching verses; continuing without verse context")
            return DegradedContext(references=[], reason=NO_MATCHES)

        references = self.enricher.enrich(references)
        usable = [ref for ref in references if ref.is_usable]
        if not usable:
            logger.info(f"None of {len(references)} matching verses has text")
            return DegradedContext(references=references, reason=MISSING_TEXT)

        return VerseContext(references=references, usable=usable)


async def relay_events(
    context_event: dict,
    fragments: AsyncIterator[str],
    is_disconnected: Optional[DisconnectCheck] = None,
) -> AsyncIterator[str]:
    """Turn a fragment stream into downstream SSE frames.

    The upstream iterator is always closed on exit, including when the
    client goes away and the response generator itself is closed.
    """
    try:
        yield format_event(context_event)
        yield format_event({"content": ""})

        async for fragment in fragments:
            if is_disconnected is not None and await is_disconnected():
                logger.info("Client disconnected; stopping upstream read")
                return
            yield format_event({"content": fragment})
    except Exception as e:
        logger.error(f"Error during streaming response: {e}")
        yield format_event({"error": str(e)})
    finally:
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            await aclose()

    yield DONE_EVENT


async def _single(text: str) -> AsyncIterator[str]:
    yield text


class _Orchestrator(ABC):
    kind: str
    top_k: int
    temperature: float
    max_tokens: int
    missing_input_message: str

    def __init__(self, retriever: VerseRetriever, completion: CompletionClient):
        self.retriever = retriever
        self.completion = completion

    async def prepare(self, text: Optional[str]) -> RequestPlan:
        """Validate and retrieve; raises ValidationError or UpstreamError"""
        text = require_text(text, self.missing_input_message)
        logger.info(f'Processing {self.kind}: "{text}"')
        context = await self.retriever.retrieve(text, self.top_k)
        return self.assemble(text, context)

    @abstractmethod
    def assemble(self, text: str, context: RetrievalContext) -> RequestPlan:
        """Turn a retrieval result into a plan: prompt messages or a fixed answer"""

    def _fragments(self, plan: RequestPlan) -> AsyncIterator[str]:
        if plan.canned_response is not None:
            return _single(plan.canned_response)
        return self.completion.stream_complete(
            plan.messages, temperature=self.temperature, max_tokens=self.max_tokens
        )


class QueryOrchestrator(_Orchestrator):
    kind = "query"
    top_k = QUERY_TOP_K
    temperature = QUERY_TEMPERATURE
    max_tokens = QUERY_MAX_TOKENS
    missing_input_message = "Query is required"

    def assemble(self, text: str, context: RetrievalContext) -> RequestPlan:
        if isinstance(context, DegradedContext):
            canned = QUERY_NO_MATCHES_RESPONSE if context.reason == NO_MATCHES else QUERY_MISSING_TEXT_RESPONSE
            return RequestPlan(text=text, context=context, canned_response=canned)
        return RequestPlan(
            text=text,
            context=context,
            messages=build_query_messages(text, context.usable),
        )

    async def respond(self, plan: RequestPlan) -> QueryResponse:
        if plan.canned_response is not None:
            response = plan.canned_response
        else:
            response = await self.completion.complete(
                plan.messages, temperature=self.temperature, max_tokens=self.max_tokens
            )
        return QueryResponse(response=response, references=plan.context.references)

    async def answer(self, query: Optional[str]) -> QueryResponse:
        return await self.respond(await self.prepare(query))

    def stream(self, plan: RequestPlan, is_disconnected: Optional[DisconnectCheck] = None) -> AsyncIterator[str]:
        references = [ref.model_dump(by_alias=True) for ref in plan.context.references]
        logger.info(f"Sending {len(references)} references in the first streaming event")
        return relay_events({"references": references}, self._fragments(plan), is_disconnected)


class PrayerOrchestrator(_Orchestrator):
    kind = "prayer request"
    top_k = PRAYER_TOP_K
    temperature = PRAYER_TEMPERATURE
    max_tokens = PRAYER_MAX_TOKENS
    missing_input_message = "Prayer request is required"

    def assemble(self, text: str, context: RetrievalContext) -> RequestPlan:
        return RequestPlan(
            text=text,
            context=context,
            messages=build_prayer_messages(text, context.usable),
        )

    async def respond(self, plan: RequestPlan) -> Union[PrayerResponse, FallbackPrayerResponse]:
        prayer = await self.completion.complete(
            plan.messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            fallback=PRAYER_FALLBACK_TEXT,
        )

        context = plan.context
        if isinstance(context, DegradedContext) and context.reason == NO_MATCHES:
            return FallbackPrayerResponse(
                prayer=prayer,
                references=[],
                note="Prayer generated without specific Bible verse context",
            )

        verse_count = len(context.usable)
        if verse_count:
            note = f"Prayer inspired by {verse_count} relevant Bible verses"
        else:
            note = "Prayer generated with general biblical principles"
        return PrayerResponse(prayer=prayer, verseCount=verse_count, note=note)

    async def generate(self, prayer_request: Optional[str]) -> Union[PrayerResponse, FallbackPrayerResponse]:
        return await self.respond(await self.prepare(prayer_request))

    def stream(self, plan: RequestPlan, is_disconnected: Optional[DisconnectCheck] = None) -> AsyncIterator[str]:
        verse_count = len(plan.context.usable)
        logger.info(f"Using {verse_count} Bible verses as context for prayer generation")
        return relay_events(
            {"type": "prayer_context", "verseCount": verse_count},
            self._fragments(plan),
            is_disconnected,
        )
