"""Query service: answers questions about the notes of one folder.

embed query → nearest chunks of the folder → grounding prompt → LLM completion.
An empty folder is not an error: the model then receives an empty context and
is instructed to say that the information is missing.
"""

from server.api.services.prompts import build_context, build_folder_query_prompt
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors.pipeline_errors import (
    CompletionFailure,
    EmbeddingFailure,
    PipelineError,
    ProviderError,
    ValidationError,
)
from shared.helper.HelperConfig import HelperConfig


class QueryService:
    """Orchestrates embedding, folder-scoped retrieval and grounded completion."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._llm_client = llm_client
        self.default_limit = helper_config.get_int_val("QUERY_TOP_K", default=5, min_val=1)

    ##########################################
    ################ CORE ####################
    ##########################################

    async def do_answer(self, query: str, folder_id: int, limit: int | None = None) -> str:
        """Answer a natural language question from the transcripts of one folder.

        Args:
            query (str): The user's question.
            folder_id (int): Folder whose chunks ground the answer.
            limit (int | None): Maximum number of chunks to retrieve, defaults to QUERY_TOP_K.

        Returns:
            str: The completion text, unmodified.

        Raises:
            ValidationError: If the query is blank, folder_id < 1 or limit < 1.
            EmbeddingFailure: If the query cannot be embedded.
            PersistenceError: If the retrieval fails.
            CompletionFailure: If the completion backend fails.
        """
        limit = self.default_limit if limit is None else limit
        if not query or not query.strip():
            raise ValidationError("query must be provided", folder_id=folder_id)
        if folder_id < 1:
            raise ValidationError("folder ID must be >= 1", folder_id=folder_id)
        if limit < 1:
            raise ValidationError("limit must be >= 1", folder_id=folder_id)

        self.logging.info("Executing folder query: folder_id=%d query=%r limit=%d", folder_id, query[:80], limit)

        try:
            query_vector = await self._embed_client.do_generate_embedding(query)
        except ProviderError as exc:
            self.logging.error("Failed to generate query embedding for folder_id=%d: %s", folder_id, exc)
            if not isinstance(exc, EmbeddingFailure):
                raise EmbeddingFailure(exc.message, folder_id=folder_id, stage="embed") from exc
            raise exc.with_context(folder_id=folder_id, stage="embed")

        try:
            chunks = await self._rag_client.do_nearest_chunks(folder_id, query_vector, limit)
        except PipelineError as exc:
            self.logging.error("Failed to retrieve relevant chunks for folder_id=%d: %s", folder_id, exc)
            raise exc.with_context(folder_id=folder_id, stage="retrieve")

        if not chunks:
            self.logging.info("No chunks stored for folder_id=%d, answering without context.", folder_id)

        prompt = build_folder_query_prompt(build_context(chunks), query)

        try:
            answer = await self._llm_client.do_complete(prompt)
        except ProviderError as exc:
            self.logging.error("Failed to get answer from %s for folder_id=%d: %s", self._llm_client.get_engine_name(), folder_id, exc)
            if not isinstance(exc, CompletionFailure):
                raise CompletionFailure(exc.message, folder_id=folder_id, stage="complete") from exc
            raise exc.with_context(folder_id=folder_id, stage="complete")

        self.logging.info("Folder query complete: folder_id=%d chunks=%d", folder_id, len(chunks))
        return answer
