"""FastAPI application entry point for the notes AI bridge API."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server.api.routers.NoteRouter import note_router
from server.api.routers.QueryRouter import query_router
from server.api.services.QueryService import QueryService
from services.transcript_ingest.IngestDispatcher import IngestDispatcher
from services.transcript_ingest.IngestService import IngestService
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.errors.pipeline_errors import (
    NotFoundError,
    PersistenceError,
    PipelineError,
    ProviderError,
    ValidationError,
)
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown."""
    app.state.logging = logging
    app.state.config = HelperConfig(logger=logging)

    # Initialise clients
    embed_client = EmbedClientManager(helper_config=app.state.config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.config).get_client()
    rag_client = RAGClientManager(helper_config=app.state.config).get_client()
    clients: list[ClientInterface] = [embed_client, llm_client, rag_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(rag_client, embed_client, llm_client)

    # Ensure the chunk collection exists with the dimension of the embedding model
    vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
    await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)

    # Wire up services
    app.state.rag_client = rag_client
    app.state.ingest_service = IngestService(
        helper_config=app.state.config,
        rag_client=rag_client,
        embed_client=embed_client,
    )
    app.state.ingest_dispatcher = IngestDispatcher(
        helper_config=app.state.config,
        ingest_service=app.state.ingest_service,
    )
    app.state.query_service = QueryService(
        helper_config=app.state.config,
        rag_client=rag_client,
        embed_client=embed_client,
        llm_client=llm_client,
    )

    logging.info("Notes AI bridge API ready.", color="green")
    yield

    # Shutdown: let running ingestions finish before the clients go away
    logging.info("Shutting down: waiting for background ingestions...")
    await app.state.ingest_dispatcher.wait_idle()
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


async def check_connections(rag_client: ClientInterface, embed_client: ClientInterface, llm_client: ClientInterface) -> None:
    """Check connectivity to all configured backends on startup.

    Embedding and LLM failures are non-fatal (requests will fail later with 502,
    but the server stays up). A RAG failure is fatal, the collection cannot be
    prepared without it.

    Raises:
        httpx.HTTPError: If the RAG backend is not reachable.
    """
    await rag_client.do_healthcheck()

    for client in (embed_client, llm_client):
        try:
            await client.do_healthcheck()
        except httpx.HTTPError as exc:
            logging.warning(
                "%s client '%s' is not reachable: %s",
                client.get_client_type().upper(),
                client.get_engine_name(),
                exc,
            )


def _error_response(status_code: int, exc: PipelineError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "context": exc.get_context()},
    )


app = FastAPI(
    title="Notes AI Bridge",
    description=(
        "Retrieval-augmented question answering over voice-note transcripts. "
        "Transcripts are chunked, embedded and stored per note via POST /notes/{note_id}/transcript, "
        "questions are answered from the notes of a folder via POST /folders/{folder_id}/query."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(note_router)
app.include_router(query_router)


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(422, exc)


@app.exception_handler(NotFoundError)
async def handle_not_found_error(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(404, exc)


@app.exception_handler(ProviderError)
async def handle_provider_error(request: Request, exc: ProviderError) -> JSONResponse:
    return _error_response(502, exc)


@app.exception_handler(PersistenceError)
async def handle_persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
    return _error_response(503, exc)


# Server Start
if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting Notes AI Bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", os.getcwd()),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
