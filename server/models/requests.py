from pydantic import BaseModel, Field


class IngestRequest(BaseModel):
    transcript: str
    folder_id: int = Field(ge=0)


class FolderQueryRequest(BaseModel):
    query: str
    limit: int | None = Field(default=None, ge=1, le=50)


class ReassignFolderRequest(BaseModel):
    folder_id: int = Field(ge=0)
