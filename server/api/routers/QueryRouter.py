"""Query router: natural language questions against the notes of a folder."""

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse

from server.models.requests import FolderQueryRequest
from server.models.responses import FolderQueryResponse
from shared.dependencies.auth import verify_api_key

query_router = APIRouter()


@query_router.post(
    "/folders/{folder_id}/query",
    dependencies=[Depends(verify_api_key)],
    tags=["Query"],
)
async def handle_folder_query(request: Request, body: FolderQueryRequest, folder_id: int = Path(ge=1)) -> JSONResponse:
    """Answer a question from the transcripts stored for a folder.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (FolderQueryRequest): The question and an optional retrieval limit.
        folder_id (int): The folder whose chunks ground the answer.

    Returns:
        JSONResponse: The LLM's answer.
    """
    request.app.state.logging.info("Query received: folder_id=%d query=%r", folder_id, body.query[:80])

    answer = await request.app.state.query_service.do_answer(body.query, folder_id, limit=body.limit)
    return JSONResponse(content=FolderQueryResponse(folder_id=folder_id, answer=answer).model_dump())
