from abc import abstractmethod
from datetime import datetime, timezone
from typing import Any
import json
import math
import uuid

import httpx
from shared.clients.rag.models.ChunkPoint import ChunkPoint
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.ClientInterface import ClientInterface
from shared.errors.pipeline_errors import InvalidArgumentError, PersistenceError
from shared.models.transcript import TranscriptChunk

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Transcript chunk store on top of a vector backend.

    Holds exactly one logical collection of note-transcript chunks. Every
    operation that touches stored chunks converts transport failures, timeouts
    and non-2xx answers into PersistenceError.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        # writes and deletes must fail fast instead of stalling the sequential ingestion
        self.write_timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_WRITE_TIMEOUT", default=3.0)
        self.scroll_page_size = 256

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @staticmethod
    def _check_note_id(note_id: int) -> None:
        if note_id < 1:
            raise InvalidArgumentError("invalid note ID %r, must be >= 1" % note_id, note_id=note_id)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """Returns the endpoint path for point upserts (e.g. "/collections/c/points")."""
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """Returns the endpoint path for deleting points by filter."""
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """Returns the endpoint path for nearest-neighbour searches."""
        pass

    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """Returns the endpoint path for paginated point listing."""
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """Returns the endpoint path for counting points matching a filter."""
        pass

    @abstractmethod
    def _get_endpoint_set_payload(self) -> str:
        """Returns the endpoint path for overwriting payload fields by filter."""
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """Returns the endpoint path for collection existence checks."""
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """Returns the endpoint path for collection creation."""
        pass

    @abstractmethod
    def _get_endpoint_create_index(self) -> str:
        """Returns the endpoint path for payload index creation."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_match_filter(self, conditions: dict[str, Any]) -> dict:
        """
        Builds a backend filter requiring every payload field to equal the given value.

        Args:
            conditions (dict[str, Any]): Payload field name → required value.

        Returns:
            dict: The backend-specific filter.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, points: list[dict]) -> dict:
        """Builds the request body for upserting points ({"id", "vector", "payload"} dicts)."""
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        """Builds the request body for a filter-based delete."""
        pass

    @abstractmethod
    def get_count_payload(self, filter: dict) -> dict:
        """Builds the request body for an exact point count."""
        pass

    @abstractmethod
    def get_search_payload(self, query_vector: list[float], filter: dict, limit: int) -> dict:
        """Builds the request body for a filtered nearest-neighbour search."""
        pass

    @abstractmethod
    def get_scroll_payload(self, filter: dict, with_vector: bool, limit: int, offset: str | int | None = None) -> dict:
        """Builds the request body for one scroll page."""
        pass

    @abstractmethod
    def get_set_payload_payload(self, payload: dict, filter: dict) -> dict:
        """Builds the request body for overwriting payload fields of all points matching a filter."""
        pass

    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """Builds the request body for collection creation."""
        pass

    @abstractmethod
    def get_create_index_payload(self, field_name: str) -> dict:
        """Builds the request body for an integer payload index on field_name."""
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        """
        Extracts hits from a search response, each a dict with "payload" and "score".
        Higher score means more similar.
        """
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> ScrollResult:
        """Extracts points and the next page cursor from a scroll response."""
        pass

    @abstractmethod
    def extract_count(self, raw_response: dict) -> int:
        """Extracts the number of matching points from a count response."""
        pass

    @abstractmethod
    def extract_collection_exists(self, raw_response: dict) -> bool:
        """Extracts the existence flag from an existence check response."""
        pass

    ##########################################
    ################ HELPER ##################
    ##########################################

    def _point_to_chunk(self, point: dict) -> TranscriptChunk:
        """Convert a raw point (id, payload, optional vector) into a TranscriptChunk."""
        payload = ChunkPoint.model_validate(point.get("payload") or {})
        vector = point.get("vector") or []
        return TranscriptChunk(
            id=str(point.get("id")),
            note_id=payload.note_id,
            folder_id=payload.folder_id,
            chunk_index=payload.chunk_index,
            text=payload.transcript_chunk,
            embedding=vector if isinstance(vector, list) else [],
            embedding_model=payload.embedding_model,
            created_at=payload.created_at,
            updated_at=payload.updated_at,
        )

    async def _do_store_request(self, stage: str, context: dict, timeout: float | None = None, **kwargs) -> httpx.Response:
        """Send a store request, translating every backend failure into PersistenceError.

        Args:
            stage (str): Operation name used in the error context (e.g. "insert").
            context (dict): note_id / folder_id / chunk_index of the caller.
            timeout (float | None): Per-call timeout, defaults to the client timeout.
            **kwargs: Forwarded to do_request().

        Raises:
            PersistenceError: On transport failures, timeouts and non-2xx responses.
        """
        try:
            return await self.do_request(raise_on_error=True, timeout=timeout, **kwargs)
        except httpx.TimeoutException as exc:
            raise PersistenceError(
                f"{self.get_engine_name()} {stage} timed out", stage=stage, **context
            ) from exc
        except httpx.HTTPError as exc:
            raise PersistenceError(
                f"{self.get_engine_name()} {stage} failed: {exc}", stage=stage, **context
            ) from exc

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the chunk collection exists in the rag backend.

        Raises:
            PersistenceError: If the backend cannot be queried.
        """
        resp = await self._do_store_request(
            "existence_check", {}, method="GET", endpoint=self._get_endpoint_check_collection_existence()
        )
        return self.extract_collection_exists(resp.json())

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the chunk collection.

        Args:
            vector_size (int): The fixed dimension of every stored vector.
            distance (str): The distance metric used for nearest-neighbour ordering.

        Raises:
            PersistenceError: If the backend refuses the collection.
        """
        await self._do_store_request(
            "create_collection",
            {},
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_create_collection(),
        )
        self.logging.info("Created %s collection (size=%d, distance=%s).", self.get_engine_name(), vector_size, distance)

    async def do_create_payload_index(self, field_name: str) -> None:
        """Create an integer payload index so filtered deletes and searches stay index-assisted."""
        await self._do_store_request(
            "create_index",
            {},
            method="PUT",
            json=self.get_create_index_payload(field_name),
            endpoint=self._get_endpoint_create_index(),
            params={"wait": "true"},
        )

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> bool:
        """Create the collection and its note_id / folder_id indexes if missing.

        Returns:
            bool: True if the collection was created, False if it already existed.
        """
        if await self.do_existence_check():
            self.logging.info("%s collection already exists.", self.get_engine_name())
            return False
        await self.do_create_collection(vector_size=vector_size, distance=distance)
        for field_name in ("note_id", "folder_id"):
            await self.do_create_payload_index(field_name)
        return True

    async def do_insert_chunk(self, chunk: TranscriptChunk) -> TranscriptChunk:
        """Persist a single transcript chunk.

        Args:
            chunk (TranscriptChunk): Chunk with note_id, folder_id, text and embedding set.

        Returns:
            TranscriptChunk: A copy with id, created_at and updated_at assigned.

        Raises:
            InvalidArgumentError: If note_id < 1, the text is blank or the vector is empty.
            PersistenceError: If the backend rejects the point or times out.
        """
        self._check_note_id(chunk.note_id)
        context = {"note_id": chunk.note_id, "folder_id": chunk.folder_id, "chunk_index": chunk.chunk_index}
        if not chunk.text.strip():
            raise InvalidArgumentError("refusing to store a blank chunk", **context)
        if not chunk.embedding:
            raise InvalidArgumentError("refusing to store a chunk without embedding", **context)

        now = datetime.now(timezone.utc)
        stored = chunk.model_copy(update={"id": str(uuid.uuid4()), "created_at": now, "updated_at": now})
        payload = ChunkPoint(
            note_id=stored.note_id,
            folder_id=stored.folder_id,
            chunk_index=stored.chunk_index,
            transcript_chunk=stored.text,
            embedding_model=stored.embedding_model,
            created_at=now.isoformat(),
            updated_at=now.isoformat(),
        )
        point = {"id": stored.id, "vector": stored.embedding, "payload": payload.model_dump()}

        await self._do_store_request(
            "insert",
            context,
            timeout=self.write_timeout,
            method="PUT",
            content=json.dumps(self.get_upsert_payload([point])),
            endpoint=self._get_endpoint_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
        )
        return stored

    async def do_count(self, filter: dict, context: dict | None = None) -> int:
        """Count the points matching a filter.

        Raises:
            PersistenceError: If the backend cannot be queried.
        """
        resp = await self._do_store_request(
            "count",
            context or {},
            method="POST",
            json=self.get_count_payload(filter),
            endpoint=self._get_endpoint_count(),
        )
        return self.extract_count(resp.json())

    async def do_delete_by_note(self, note_id: int) -> int:
        """Delete every chunk of a note.

        Idempotent: a note without chunks deletes nothing and returns 0.

        Args:
            note_id (int): The owning note, must be >= 1.

        Returns:
            int: Number of deleted chunks.

        Raises:
            InvalidArgumentError: If note_id < 1.
            PersistenceError: If counting or deleting fails.
        """
        self._check_note_id(note_id)
        context = {"note_id": note_id}
        filter = self.get_match_filter({"note_id": note_id})

        count = await self.do_count(filter, context=context)
        if count == 0:
            return 0

        await self._do_store_request(
            "delete",
            context,
            timeout=self.write_timeout,
            method="POST",
            content=json.dumps(self.get_delete_payload(filter)),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
        )
        self.logging.debug("Deleted %d chunks for note_id=%d.", count, note_id)
        return count

    async def do_search(self, folder_id: int, query_vector: list[float], k: int) -> list[dict]:
        """Run a folder-scoped nearest-neighbour search and return the raw hits.

        Returns:
            list[dict]: At most k hits, highest score (smallest distance) first.

        Raises:
            InvalidArgumentError: If k < 1 or the query vector is empty.
            PersistenceError: If the search fails.
        """
        context = {"folder_id": folder_id}
        if k < 1:
            raise InvalidArgumentError("k must be >= 1, got %r" % k, **context)
        if not query_vector:
            raise InvalidArgumentError("query vector is empty", **context)

        resp = await self._do_store_request(
            "search",
            context,
            method="POST",
            json=self.get_search_payload(query_vector, self.get_match_filter({"folder_id": folder_id}), k),
            endpoint=self._get_endpoint_search(),
        )
        hits = self.extract_search_hits(resp.json())
        # the backend already ranks, a stable sort keeps ties in backend order
        hits = sorted(hits, key=lambda hit: hit.get("score", 0.0), reverse=True)
        return hits[:k]

    async def do_nearest_chunks(self, folder_id: int, query_vector: list[float], k: int) -> list[str]:
        """Return the texts of the k chunks of a folder closest to query_vector.

        Args:
            folder_id (int): Retrieval scope; chunks of other folders are never returned.
            query_vector (list[float]): Vector produced by the same model as the stored chunks.
            k (int): Maximum number of results.

        Returns:
            list[str]: Chunk texts, most similar first. Empty if the folder has no chunks.

        Raises:
            InvalidArgumentError: If k < 1.
            PersistenceError: If the search fails.
        """
        hits = await self.do_search(folder_id=folder_id, query_vector=query_vector, k=k)
        return [(hit.get("payload") or {}).get("transcript_chunk", "") for hit in hits]

    async def do_scroll(self, filter: dict, with_vector: bool = False, limit: int | None = None, offset: str | int | None = None, context: dict | None = None) -> ScrollResult:
        """Scroll a single page of points matching a filter.

        Raises:
            PersistenceError: If the scroll fails.
        """
        resp = await self._do_store_request(
            "scroll",
            context or {},
            method="POST",
            json=self.get_scroll_payload(filter, with_vector, limit or self.scroll_page_size, offset),
            endpoint=self._get_endpoint_scroll(),
        )
        return self.extract_scroll_content(resp.json())

    async def do_scroll_all(self, filter: dict, with_vector: bool = False, context: dict | None = None) -> ScrollResult:
        """Scroll through ALL points matching the filter, paginating automatically.

        Returns:
            ScrollResult: All matching points; next_page_offset is always None.
        """
        all_points: list[dict] = []
        offset: str | int | None = None
        page = 1
        total_points = await self.do_count(filter, context=context)
        total_pages = math.ceil(total_points / self.scroll_page_size) if total_points > 0 else 1
        while True:
            page_result = await self.do_scroll(filter, with_vector=with_vector, offset=offset, context=context)
            all_points.extend(page_result.result)
            self.logging.debug(
                "Fetched %s points page %d of %d, total points so far: %d of %d",
                self.get_engine_name(), page, total_pages, len(all_points), total_points,
            )
            offset = page_result.next_page_offset
            if offset is None:
                break
            page += 1
        return ScrollResult(result=all_points)

    async def do_list_by_note(self, note_id: int, with_vectors: bool = False) -> list[TranscriptChunk]:
        """List the chunks of a note in chunk order, for administrative views.

        Raises:
            InvalidArgumentError: If note_id < 1.
            PersistenceError: If the listing fails.
        """
        self._check_note_id(note_id)
        scroll = await self.do_scroll_all(
            self.get_match_filter({"note_id": note_id}),
            with_vector=with_vectors,
            context={"note_id": note_id},
        )
        chunks = [self._point_to_chunk(point) for point in scroll.result]
        return sorted(chunks, key=lambda chunk: chunk.chunk_index)

    async def do_reassign_folder(self, note_id: int, folder_id: int) -> int:
        """Point every chunk of a note at a new folder, e.g. after the note moved.

        Returns:
            int: Number of chunks updated.

        Raises:
            InvalidArgumentError: If note_id < 1 or folder_id < 0.
            PersistenceError: If counting or updating fails.
        """
        self._check_note_id(note_id)
        if folder_id < 0:
            raise InvalidArgumentError("invalid folder ID %r, must not be negative" % folder_id, note_id=note_id, folder_id=folder_id)
        context = {"note_id": note_id, "folder_id": folder_id}
        filter = self.get_match_filter({"note_id": note_id})

        count = await self.do_count(filter, context=context)
        if count == 0:
            return 0

        payload = {"folder_id": folder_id, "updated_at": datetime.now(timezone.utc).isoformat()}
        await self._do_store_request(
            "reassign_folder",
            context,
            timeout=self.write_timeout,
            method="POST",
            json=self.get_set_payload_payload(payload, filter),
            endpoint=self._get_endpoint_set_payload(),
            params={"wait": "true"},
        )
        return count
