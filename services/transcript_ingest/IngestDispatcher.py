"""Background ingestion.

Callers that trigger an ingestion must not wait for the embedding backend:
submit() validates the request synchronously, schedules the run as an asyncio
task and returns a pending job at once. The outcome is only observable through
the logs and the job status kept per note.

Ingestions of different notes run concurrently. Ingestions of the same note
are serialized in submission order, so the last submission is the last one
to write and a note never holds chunks of two runs.
"""

import asyncio
from datetime import datetime, timezone

from services.transcript_ingest.IngestService import IngestService
from shared.errors.pipeline_errors import NotFoundError, PipelineError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.transcript import IngestionJob, IngestionStatus

# number of finished jobs whose status stays queryable
DEFAULT_JOB_HISTORY = 1000


class IngestDispatcher:
    """Runs ingestions as fire-and-forget tasks and tracks their processing status."""

    def __init__(self, helper_config: HelperConfig, ingest_service: IngestService) -> None:
        self.logging = helper_config.get_logger()
        self._ingest_service = ingest_service
        self._job_history = helper_config.get_int_val("INGEST_JOB_HISTORY", default=DEFAULT_JOB_HISTORY, min_val=1)
        # latest job per note, oldest submission first
        self._jobs: dict[int, IngestionJob] = {}
        # per-note locks, dropped once no run of the note is queued
        self._locks: dict[int, asyncio.Lock] = {}
        self._queued: dict[int, int] = {}
        # strong references, the event loop only keeps weak ones
        self._tasks: set[asyncio.Task] = set()

    ##########################################
    ################ SUBMIT ##################
    ##########################################

    def submit(self, transcript: str, note_id: int, folder_id: int) -> IngestionJob:
        """Schedule the ingestion of a note's transcript in the background.

        Must be called from within a running event loop. If an ingestion of
        the same note is still queued or running, the new one starts after it.

        Args:
            transcript (str): The note's transcript text.
            note_id (int): The owning note, must be >= 1.
            folder_id (int): The note's folder, must not be negative.

        Returns:
            IngestionJob: The job in PENDING state.

        Raises:
            ValidationError: If note_id or folder_id is out of range.
        """
        if note_id < 1:
            raise ValidationError("note ID must be >= 1", note_id=note_id, folder_id=folder_id)
        if folder_id < 0:
            raise ValidationError("folder ID must not be negative", note_id=note_id, folder_id=folder_id)

        job = IngestionJob(note_id=note_id, folder_id=folder_id, submitted_at=datetime.now(timezone.utc))
        # re-insert so the dict stays ordered by latest submission
        self._jobs.pop(note_id, None)
        self._jobs[note_id] = job

        if note_id not in self._locks:
            self._locks[note_id] = asyncio.Lock()
        self._queued[note_id] = self._queued.get(note_id, 0) + 1

        task = asyncio.create_task(self._run(job, transcript), name=f"ingest-note-{note_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        self.logging.info("Ingestion accepted for note_id=%d folder_id=%d", note_id, folder_id)
        return job.model_copy()

    async def _run(self, job: IngestionJob, transcript: str) -> None:
        """Execute one ingestion once the note is free and record its outcome on the job."""
        try:
            # asyncio.Lock wakes waiters in FIFO order
            async with self._locks[job.note_id]:
                await self._ingest(job, transcript)
        finally:
            self._queued[job.note_id] -= 1
            if self._queued[job.note_id] == 0:
                del self._queued[job.note_id]
                del self._locks[job.note_id]
            self._prune_jobs()

    async def _ingest(self, job: IngestionJob, transcript: str) -> None:
        job.status = IngestionStatus.PROCESSING
        try:
            job.result = await self._ingest_service.do_ingest(transcript, job.note_id, job.folder_id)
            job.status = IngestionStatus.DONE
        except PipelineError as exc:
            job.status = IngestionStatus.FAILED
            job.error = str(exc)
            self.logging.error(
                "Background ingestion failed for note_id=%d folder_id=%d: %s",
                job.note_id, job.folder_id, exc,
            )
        except Exception as exc:
            job.status = IngestionStatus.FAILED
            job.error = f"unexpected error: {exc}"
            self.logging.exception("Unexpected error during background ingestion of note_id=%d", job.note_id)
        finally:
            job.finished_at = datetime.now(timezone.utc)

    def _prune_jobs(self) -> None:
        """Forget the oldest finished jobs beyond the configured history size."""
        finished = [note_id for note_id, job in self._jobs.items() if job.finished_at is not None]
        for note_id in finished[: max(0, len(finished) - self._job_history)]:
            del self._jobs[note_id]

    ##########################################
    ################ STATUS ##################
    ##########################################

    def get_status(self, note_id: int) -> IngestionJob:
        """Return the status of the latest ingestion submitted for a note.

        Raises:
            NotFoundError: If no ingestion was submitted for the note, or its
                finished job has been pruned from the history.
        """
        job = self._jobs.get(note_id)
        if job is None:
            raise NotFoundError("no ingestion submitted for note", note_id=note_id)
        return job.model_copy()

    async def wait_idle(self) -> None:
        """Wait until every scheduled ingestion has finished, e.g. on shutdown.

        Ingestions submitted while waiting are awaited as well.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
