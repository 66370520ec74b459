"""Pydantic models for transcript chunks and ingestion runs.

Hierarchy:
  TranscriptChunk    one stored window of transcript text plus its vector.
  IngestResult       outcome of a single successful ingestion run.
  IngestionStatus    processing state of a backgrounded ingestion.
  IngestionJob       status record of the latest ingestion per note.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TranscriptChunk(BaseModel):
    """A transcript chunk as stored in the vector backend.

    id, created_at and updated_at are assigned by the store on insert and
    stay None on chunks that have not been persisted yet. folder_id is the
    note's folder at ingestion time and is the retrieval scoping key.
    """

    id: str | None = None
    note_id: int
    folder_id: int
    chunk_index: int = 0
    text: str
    embedding: list[float] = Field(default_factory=list, repr=False)
    embedding_model: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class IngestResult(BaseModel):
    """Outcome of one ingestion run for a note."""

    note_id: int
    folder_id: int
    deleted_chunks: int = 0
    stored_chunks: int = 0


class IngestionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class IngestionJob(BaseModel):
    """Processing status of the most recent ingestion submitted for a note.

    Attributes:
        note_id:       Note being ingested.
        folder_id:     Folder the chunks are scoped to.
        status:        Current processing state.
        submitted_at:  When the ingestion was accepted.
        finished_at:   When it reached DONE or FAILED, else None.
        result:        Counts of the finished run (DONE only).
        error:         Human-readable failure reason (FAILED only).
    """

    note_id: int
    folder_id: int
    status: IngestionStatus = IngestionStatus.PENDING
    submitted_at: datetime
    finished_at: datetime | None = None
    result: IngestResult | None = None
    error: str | None = None
