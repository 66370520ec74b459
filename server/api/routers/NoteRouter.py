"""Note router: transcript ingestion and chunk administration per note.

POST /notes/{note_id}/transcript starts a background ingestion and answers
202 right away; failures of that run only show up in the logs and in
GET /notes/{note_id}/ingestion.
"""

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse

from server.models.requests import IngestRequest, ReassignFolderRequest
from server.models.responses import (
    ChunkCountResponse,
    ChunkItem,
    ChunkListResponse,
    IngestAcceptedResponse,
)
from shared.dependencies.auth import verify_api_key

note_router = APIRouter(prefix="/notes", dependencies=[Depends(verify_api_key)], tags=["Notes"])


@note_router.post("/{note_id}/transcript", status_code=202)
async def handle_ingest_transcript(request: Request, body: IngestRequest, note_id: int = Path(ge=1)) -> JSONResponse:
    """Accept a transcript and ingest it as a fire-and-forget background task.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (IngestRequest): Transcript text and the note's folder.
        note_id (int): The owning note.

    Returns:
        JSONResponse: 202 with the pending ingestion job.
    """
    job = request.app.state.ingest_dispatcher.submit(body.transcript, note_id, body.folder_id)
    response = IngestAcceptedResponse(
        message="Transcript accepted. Processing has started in the background.",
        job=job,
    )
    return JSONResponse(status_code=202, content=response.model_dump(mode="json"))


@note_router.get("/{note_id}/ingestion")
async def handle_ingestion_status(request: Request, note_id: int = Path(ge=1)) -> JSONResponse:
    """Return the processing status of the latest ingestion of a note (404 if none)."""
    job = request.app.state.ingest_dispatcher.get_status(note_id)
    return JSONResponse(content=job.model_dump(mode="json"))


@note_router.get("/{note_id}/chunks")
async def handle_list_chunks(request: Request, note_id: int = Path(ge=1)) -> JSONResponse:
    """List the stored chunks of a note, without vectors."""
    chunks = await request.app.state.rag_client.do_list_by_note(note_id)
    items = [
        ChunkItem(
            id=chunk.id,
            chunk_index=chunk.chunk_index,
            folder_id=chunk.folder_id,
            text=chunk.text,
            embedding_model=chunk.embedding_model,
            created_at=chunk.created_at.isoformat() if chunk.created_at else None,
            updated_at=chunk.updated_at.isoformat() if chunk.updated_at else None,
        )
        for chunk in chunks
    ]
    response = ChunkListResponse(note_id=note_id, chunks=items, total=len(items))
    return JSONResponse(content=response.model_dump())


@note_router.delete("/{note_id}/chunks")
async def handle_delete_chunks(request: Request, note_id: int = Path(ge=1)) -> JSONResponse:
    """Delete all chunks of a note, e.g. when the note itself is deleted."""
    deleted = await request.app.state.rag_client.do_delete_by_note(note_id)
    request.app.state.logging.info("Deleted %d chunks for note_id=%d", deleted, note_id)
    return JSONResponse(content=ChunkCountResponse(note_id=note_id, count=deleted).model_dump())


@note_router.put("/{note_id}/folder")
async def handle_reassign_folder(request: Request, body: ReassignFolderRequest, note_id: int = Path(ge=1)) -> JSONResponse:
    """Move the chunks of a note to the folder the note was moved to."""
    updated = await request.app.state.rag_client.do_reassign_folder(note_id, body.folder_id)
    request.app.state.logging.info("Reassigned %d chunks of note_id=%d to folder_id=%d", updated, note_id, body.folder_id)
    return JSONResponse(content=ChunkCountResponse(note_id=note_id, count=updated).model_dump())
