"""ChunkPoint model: metadata stored alongside each transcript chunk vector."""

from pydantic import BaseModel


class ChunkPoint(BaseModel):
    """Payload stored next to each transcript chunk vector in a RAG backend.

    folder_id is denormalised from the note at ingestion time and is the only
    key retrieval is scoped by. note_id groups all chunks of one ingestion run
    so they can be deleted together.

    Attributes:
        note_id:          Owning note.
        folder_id:        Folder of the note at ingestion time.
        chunk_index:      Zero-based position of the chunk in its ingestion run.
        transcript_chunk: Raw chunk text, never blank.
        embedding_model:  Model that produced the vector.
        created_at:       ISO-8601 UTC timestamp assigned on insert.
        updated_at:       ISO-8601 UTC timestamp of the last payload change.
    """

    note_id: int
    folder_id: int
    chunk_index: int
    transcript_chunk: str
    embedding_model: str | None = None
    created_at: str
    updated_at: str
