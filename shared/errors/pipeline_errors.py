"""Error taxonomy shared by the clients and the ingestion / query pipelines.

Hierarchy:
  PipelineError            base, carries the identifying context of a failure.
  ValidationError          malformed input, reported synchronously, never retried.
  InvalidArgumentError     store-level argument check (e.g. note_id < 1).
  NotFoundError            referenced note or ingestion job is unknown.
  ProviderError            the embedding or completion backend failed.
  EmbeddingFailure         ProviderError raised while embedding.
  CompletionFailure        ProviderError raised while completing a prompt.
  PersistenceError         the vector store failed on insert/delete/query/update.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        note_id (int | None): The note the failing call worked on, if any.
        folder_id (int | None): The folder the failing call worked on, if any.
        chunk_index (int | None): Position of the chunk being processed, if any.
        stage (str | None): Pipeline stage that failed (e.g. "embed", "persist").
    """

    def __init__(
        self,
        message: str,
        note_id: int | None = None,
        folder_id: int | None = None,
        chunk_index: int | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.note_id = note_id
        self.folder_id = folder_id
        self.chunk_index = chunk_index
        self.stage = stage

    def get_context(self) -> dict:
        """Return the non-empty context fields, e.g. for structured log output."""
        context = {
            "note_id": self.note_id,
            "folder_id": self.folder_id,
            "chunk_index": self.chunk_index,
            "stage": self.stage,
        }
        return {key: val for key, val in context.items() if val is not None}

    def with_context(self, **context) -> "PipelineError":
        """Fill in context fields that are still unset and return self for re-raising."""
        for key, val in context.items():
            if getattr(self, key, None) is None:
                setattr(self, key, val)
        return self

    def __str__(self) -> str:
        context = self.get_context()
        if not context:
            return self.message
        details = ", ".join(f"{key}={val}" for key, val in context.items())
        return f"{self.message} ({details})"


class ValidationError(PipelineError, ValueError):
    pass


class InvalidArgumentError(ValidationError):
    pass


class NotFoundError(PipelineError):
    pass


class ProviderError(PipelineError):
    pass


class EmbeddingFailure(ProviderError):
    pass


class CompletionFailure(ProviderError):
    pass


class PersistenceError(PipelineError):
    pass
