"""Pinecone similarity search over the verse index"""

import asyncio
import random
from typing import Any, Dict, List, Optional

from langsmith import traceable
from pydantic import ValidationError as PydanticValidationError

from bible_api.config import EMBEDDING_DIMENSION, NAMESPACE, QUERY_TOP_K
from bible_api.errors import UpstreamError
from bible_api.log import get_logger
from bible_api.models import MISSING_TEXT_PLACEHOLDER, VerseReference

logger = get_logger(__name__)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a Pinecone response object or plain dict"""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    value = getattr(obj, name, None)
    if value is None and hasattr(obj, "get"):
        try:
            value = obj.get(name)
        except (KeyError, TypeError, AttributeError):
            value = None
    return default if value is None else value


def _to_int(value: Any) -> int:
    # Pinecone stores metadata numbers as floats ("3.0") or strings
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def match_to_reference(match: Any) -> VerseReference:
    """Convert one Pinecone match into a VerseReference"""
    metadata = _field(match, "metadata") or {}

    book = str(metadata.get("book") or "")
    chapter = _to_int(metadata.get("chapter"))
    verse = _to_int(metadata.get("verse") or metadata.get("startVerse"))
    text = metadata.get("text") or ""
    needs_text_lookup = False

    # Flag the gap so callers can tell "no verse" from "verse without text"
    if not text and book and chapter and verse:
        text = MISSING_TEXT_PLACEHOLDER
        needs_text_lookup = True

    return VerseReference(
        book=book,
        chapter=chapter,
        verse=verse,
        text=text,
        score=float(_field(match, "score", 0) or 0),
        needs_text_lookup=needs_text_lookup,
    )


class VerseSearchClient:
    """Queries one namespace of a Pinecone index.

    The Pinecone SDK is synchronous; calls run in a worker thread so a slow
    index never stalls other requests on the event loop.
    """

    def __init__(self, index: Any, index_name: str, namespace: str = NAMESPACE):
        self.index = index
        self.index_name = index_name
        self.namespace = namespace

    async def _query(self, vector: List[float], top_k: int, include_metadata: bool = True):
        try:
            return await asyncio.to_thread(
                self.index.query,
                vector=vector,
                top_k=top_k,
                namespace=self.namespace,
                include_values=False,
                include_metadata=include_metadata,
            )
        except Exception as e:
            logger.error(f"Error querying Pinecone: {e}")
            raise UpstreamError(
                "pinecone",
                str(e) or e.__class__.__name__,
                getattr(e, "status", None),
                getattr(e, "body", None),
            ) from e

    @traceable(run_type="retriever", name="search_pinecone")
    async def search(self, vector: List[float], top_k: int = QUERY_TOP_K) -> List[VerseReference]:
        """Top-K nearest verses, highest score first. No matches is not an error."""
        if top_k < 1:
            raise ValueError("top_k must be a positive integer")

        logger.info(f"Querying namespace '{self.namespace}' in index '{self.index_name}'...")
        results = await self._query(vector, top_k)

        matches = _field(results, "matches")
        if matches is None:
            raise UpstreamError("pinecone", "Malformed Pinecone response: missing matches")

        logger.info(f"Got {len(matches)} results from Pinecone")
        try:
            references = [match_to_reference(m) for m in matches]
        except (PydanticValidationError, AttributeError, TypeError, ValueError) as e:
            logger.error(f"Unexpected match metadata from Pinecone: {e}")
            raise UpstreamError("pinecone", "Malformed Pinecone response: invalid match metadata") from e

        references.sort(key=lambda ref: ref.score, reverse=True)
        return references

    async def describe(self) -> Dict[str, Any]:
        """Index statistics plus the metadata of one sample match"""
        try:
            stats = await asyncio.to_thread(self.index.describe_index_stats)
        except Exception as e:
            logger.error(f"Error checking Pinecone status: {e}")
            raise UpstreamError("pinecone", str(e) or e.__class__.__name__) from e

        namespaces = {}
        for name, summary in (_field(stats, "namespaces") or {}).items():
            namespaces[name] = {"vectorCount": _field(summary, "vector_count", 0)}

        probe = [random.random() - 0.5 for _ in range(EMBEDDING_DIMENSION)]
        sample = await self._query(probe, top_k=1)
        sample_matches = _field(sample, "matches") or []
        sample_metadata: Optional[dict] = None
        if sample_matches:
            sample_metadata = dict(_field(sample_matches[0], "metadata") or {})

        return {
            "recordCount": _field(stats, "total_vector_count", 0),
            "namespaces": namespaces,
            "dimension": _field(stats, "dimension"),
            "sampleMetadata": sample_metadata,
        }
