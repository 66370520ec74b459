from pydantic import BaseModel

from shared.models.transcript import IngestionJob


class IngestAcceptedResponse(BaseModel):
    message: str
    job: IngestionJob


class ChunkItem(BaseModel):
    id: str | None
    chunk_index: int
    folder_id: int
    text: str
    embedding_model: str | None
    created_at: str | None
    updated_at: str | None


class ChunkListResponse(BaseModel):
    note_id: int
    chunks: list[ChunkItem]
    total: int


class ChunkCountResponse(BaseModel):
    note_id: int
    count: int


class FolderQueryResponse(BaseModel):
    folder_id: int
    answer: str
