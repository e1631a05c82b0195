"""
Bible Search API - FastAPI Backend

Answers Bible questions with cited verses and writes personalized prayers.
Verses come from Pinecone (OpenAI embeddings); answers from OpenAI chat
completions, buffered or streamed as Server-Sent Events.
"""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from openai import AsyncOpenAI
from pinecone import Pinecone
from starlette.exceptions import HTTPException as StarletteHTTPException

from bible_api import __version__
from bible_api.completion import CompletionClient
from bible_api.config import INDEX_NAME, NAMESPACE, PORT, Settings, load_settings
from bible_api.dataset import VerseDataset
from bible_api.embeddings import EmbeddingClient
from bible_api.enrich import VerseEnricher
from bible_api.errors import UpstreamError, ValidationError
from bible_api.log import get_logger
from bible_api.models import (
    BibleQueryRequest,
    FallbackPrayerResponse,
    PrayerRequest,
    PrayerResponse,
    QueryResponse,
)
from bible_api.orchestrator import PrayerOrchestrator, QueryOrchestrator, VerseRetriever
from bible_api.search import VerseSearchClient

logger = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@dataclass
class Services:
    """Per-process collaborators shared by all requests"""

    dataset: VerseDataset
    searcher: VerseSearchClient
    query: QueryOrchestrator
    prayer: PrayerOrchestrator


def build_services(settings: Settings) -> Services:
    """Wire up clients from settings"""
    pc = Pinecone(api_key=settings.pinecone_api_key)
    if settings.pinecone_index_host:
        logger.info(f"📊 Connecting to Pinecone index via host: {settings.pinecone_index_host}")
        index = pc.Index(host=settings.pinecone_index_host)
    else:
        logger.info(f"📊 Connecting to Pinecone index: {INDEX_NAME}")
        index = pc.Index(INDEX_NAME)

    # No retries: a failed upstream call fails the request
    openai_client = AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)

    dataset = VerseDataset.from_file(settings.bible_data_path)
    return assemble_services(
        dataset=dataset,
        searcher=VerseSearchClient(index, INDEX_NAME, NAMESPACE),
        embedder=EmbeddingClient(openai_client),
        completion=CompletionClient(openai_client),
    )


def assemble_services(
    dataset: VerseDataset,
    searcher: VerseSearchClient,
    embedder: EmbeddingClient,
    completion: CompletionClient,
) -> Services:
    retriever = VerseRetriever(embedder, searcher, VerseEnricher(dataset))
    return Services(
        dataset=dataset,
        searcher=searcher,
        query=QueryOrchestrator(retriever, completion),
        prayer=PrayerOrchestrator(retriever, completion),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def _environment() -> dict:
    return {
        "hasOpenAI": bool(os.getenv("OPENAI_API_KEY")),
        "hasPinecone": bool(os.getenv("PINECONE_API_KEY")),
        "runtime": "FastAPI",
    }


def _upstream_failure(message: str, error: UpstreamError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message, "details": str(error)})


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app. Without injected services, startup reads credentials
    from the environment and refuses to start if any is missing."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting up...")
        app.state.services = services or build_services(load_settings())
        logger.info(f"   ✓ {len(app.state.services.dataset):,} verses available for text lookup")
        logger.info("✅ Ready to serve requests!")

        yield

        logger.info("👋 Shutting down...")

    app = FastAPI(
        title="Bible Search API",
        description="Bible question answering and prayer generation over Pinecone + OpenAI",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    # Preflight for clients that send OPTIONS without CORS headers
    @app.options("/api")
    @app.options("/api/{path:path}")
    async def preflight():
        return Response(status_code=200)

    @app.get("/api")
    async def health():
        """Health check endpoint"""
        return {
            "status": "Bible API Server is running",
            "endpoints": [
                "/api/bible-query (POST) - Search Bible verses",
                "/api/generate-prayer (POST) - Generate personalized prayers",
                "/api/status (GET) - Check Pinecone connection status",
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/api/bible-query", response_model=QueryResponse)
    async def bible_query(
        body: BibleQueryRequest,
        request: Request,
        services: Services = Depends(get_services),
    ):
        """
        Answer a Bible question from the closest verses.

        With ``stream: true`` the answer arrives as Server-Sent Events.
        """
        logger.info(f"Stream requested: {body.stream}")
        orchestrator = services.query
        try:
            plan = await orchestrator.prepare(body.query)
            if body.stream:
                return StreamingResponse(
                    orchestrator.stream(plan, request.is_disconnected),
                    media_type="text/event-stream",
                    headers=SSE_HEADERS,
                )
            return await orchestrator.respond(plan)
        except UpstreamError as e:
            logger.error(f"Error processing query: {e}")
            return _upstream_failure("An error occurred while processing your query", e)

    @app.post(
        "/api/generate-prayer",
        response_model=Union[PrayerResponse, FallbackPrayerResponse],
    )
    async def generate_prayer(
        body: PrayerRequest,
        request: Request,
        services: Services = Depends(get_services),
    ):
        """Write a personalized prayer inspired by related verses"""
        logger.info(f"Stream requested: {body.stream}")
        orchestrator = services.prayer
        try:
            plan = await orchestrator.prepare(body.prayerRequest)
            if body.stream:
                return StreamingResponse(
                    orchestrator.stream(plan, request.is_disconnected),
                    media_type="text/event-stream",
                    headers=SSE_HEADERS,
                )
            return await orchestrator.respond(plan)
        except UpstreamError as e:
            logger.error(f"Error processing prayer request: {e}")
            return _upstream_failure("An error occurred while generating your prayer", e)

    @app.get("/api/status")
    async def status(services: Services = Depends(get_services)):
        """Pinecone connection status and index statistics"""
        logger.info("Checking Pinecone status...")
        try:
            info = await services.searcher.describe()
        except UpstreamError as e:
            return JSONResponse(
                status_code=500,
                content={
                    "status": "error",
                    "error": str(e),
                    "config": {"index": INDEX_NAME, "namespace": NAMESPACE},
                    "environment": _environment(),
                },
            )

        sample_metadata = info["sampleMetadata"]
        return jsonable_encoder({
            "status": "connected",
            "pinecone": {
                "index": INDEX_NAME,
                "namespace": NAMESPACE,
                "recordCount": info["recordCount"],
                "namespaces": info["namespaces"],
                "dimension": info["dimension"],
            },
            "sampleMetadataKeys": list(sample_metadata) if sample_metadata else [],
            "sampleMetadata": sample_metadata,
            "environment": _environment(),
        })

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
