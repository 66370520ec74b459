"""Ingestion service.

Turns a note's transcript into stored chunk vectors: deletes the chunks of the
previous run, splits the transcript into overlapping word windows, embeds each
window through the EmbedClient and inserts it into the RAG backend, one chunk
at a time.

A failure aborts the run without rolling back chunks inserted before it, so a
failed run can leave a partial chunk set until the note is ingested again.
"""

from services.transcript_ingest.chunking import (
    CHUNK_OVERLAP_WORDS,
    CHUNK_SIZE_WORDS,
    split_transcript,
    validate_chunking,
)
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors.pipeline_errors import (
    EmbeddingFailure,
    PersistenceError,
    PipelineError,
    ProviderError,
    ValidationError,
)
from shared.helper.HelperConfig import HelperConfig
from shared.models.transcript import IngestResult, TranscriptChunk


class IngestService:
    """Orchestrates the ingestion pipeline from transcript to stored chunk vectors."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        chunk_size_words: int | None = None,
        overlap_words: int | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self.chunk_size_words = chunk_size_words if chunk_size_words is not None else helper_config.get_int_val("CHUNK_SIZE_WORDS", default=CHUNK_SIZE_WORDS, min_val=1)
        self.overlap_words = overlap_words if overlap_words is not None else helper_config.get_int_val("CHUNK_OVERLAP_WORDS", default=CHUNK_OVERLAP_WORDS, min_val=0)

        # reject a window that cannot advance before the first transcript arrives
        validate_chunking(self.chunk_size_words, self.overlap_words)

    ##########################################
    ############### CORE INGEST ##############
    ##########################################

    async def do_ingest(self, transcript: str, note_id: int, folder_id: int) -> IngestResult:
        """Replace the stored chunks of a note with chunks of its current transcript.

        Args:
            transcript (str): The note's transcript text.
            note_id (int): The owning note, must be >= 1.
            folder_id (int): The note's folder, stored on every chunk as retrieval scope.

        Returns:
            IngestResult: Deleted and stored chunk counts.

        Raises:
            ValidationError: If note_id or folder_id is out of range.
            PersistenceError: If deleting prior chunks or inserting a chunk fails.
            EmbeddingFailure: If embedding a chunk fails.
        """
        if note_id < 1:
            raise ValidationError("note ID must be >= 1", note_id=note_id, folder_id=folder_id)
        if folder_id < 0:
            raise ValidationError("folder ID must not be negative", note_id=note_id, folder_id=folder_id)

        self.logging.info("Starting ingestion for note_id=%d folder_id=%d", note_id, folder_id)

        # delete prior chunks before any insert of the new run
        try:
            deleted = await self._rag_client.do_delete_by_note(note_id)
        except PipelineError as exc:
            self.logging.error("Failed to delete previous chunks for note_id=%d: %s", note_id, exc)
            raise exc.with_context(note_id=note_id, folder_id=folder_id, stage="delete")

        result = IngestResult(note_id=note_id, folder_id=folder_id, deleted_chunks=deleted)

        chunks = split_transcript(transcript, self.chunk_size_words, self.overlap_words)
        if not chunks:
            self.logging.info("Transcript of note_id=%d has no words, nothing to store.", note_id)
            return result

        for chunk_index, chunk_text in enumerate(chunks):
            if not chunk_text.strip():
                continue
            await self._ingest_chunk(chunk_text, chunk_index, note_id, folder_id)
            result.stored_chunks += 1

        self.logging.info(
            "Ingestion complete for note_id=%d: %d chunks stored, %d previous chunks removed.",
            note_id, result.stored_chunks, result.deleted_chunks,
            color="green",
        )
        return result

    ##########################################
    ############# CHUNK INGEST ###############
    ##########################################

    async def _ingest_chunk(self, chunk_text: str, chunk_index: int, note_id: int, folder_id: int) -> TranscriptChunk:
        """Embed and insert a single chunk.

        Raises:
            EmbeddingFailure: If the embedding backend fails.
            PersistenceError: If the insert fails.
        """
        context = {"note_id": note_id, "folder_id": folder_id, "chunk_index": chunk_index}
        try:
            vector = await self._embed_client.do_generate_embedding(chunk_text)
        except ProviderError as exc:
            self.logging.error(
                "Embedding failed for note_id=%d chunk %d ('%s'): %s",
                note_id, chunk_index, chunk_text[:30], exc,
            )
            if not isinstance(exc, EmbeddingFailure):
                raise EmbeddingFailure(exc.message, stage="embed", **context) from exc
            raise exc.with_context(stage="embed", **context)

        chunk = TranscriptChunk(
            note_id=note_id,
            folder_id=folder_id,
            chunk_index=chunk_index,
            text=chunk_text,
            embedding=vector,
            embedding_model=self._embed_client.get_model_name(),
        )
        try:
            return await self._rag_client.do_insert_chunk(chunk)
        except PersistenceError as exc:
            self.logging.error(
                "Insert failed for note_id=%d chunk %d ('%s'): %s",
                note_id, chunk_index, chunk_text[:30], exc,
            )
            raise exc.with_context(stage="insert", **context)
