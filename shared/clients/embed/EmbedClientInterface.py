from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.errors.pipeline_errors import EmbeddingFailure

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())
        self.embed_vector_size = helper_config.get_number_val(f"{self.get_client_type().upper()}_VECTOR_SIZE", default=0)

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def has_credentials(self) -> bool:
        """
        Returns whether the client has everything it needs to authenticate.
        Backends without authentication always return True.
        """
        return True

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    @abstractmethod
    def _get_default_model(self) -> str:
        """
        Returns the model used when EMBED_MODEL is not set. E.g. "text-embedding-ada-002"
        """
        pass

    def get_model_name(self) -> str:
        """Returns the embedding model every vector of this client is produced with."""
        return self.embed_model

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests (e.g. "/api/embed").
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Ollama /api/embed: {"embeddings": [[...], [...]]}, already ordered
        - OpenAI-compatible: {"data": [{"embedding": [...], "index": 0}]}: needs sorting

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        """
        Returns the output vector dimension and distance metric of the configured model.

        Uses EMBED_VECTOR_SIZE when set, otherwise embeds a probe text once and
        measures the vector.

        Returns:
            tuple[int, str]: (vector_dimension, distance_metric)

        Raises:
            EmbeddingFailure: If the probe embedding fails.
        """
        if self.embed_vector_size:
            return int(self.embed_vector_size), self.embed_distance
        probe = await self.do_generate_embedding("dimension probe")
        return len(probe), self.embed_distance

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            EmbeddingFailure: On missing credentials, transport errors, non-2xx
                responses and responses without usable vectors.
        """
        texts = [texts] if isinstance(texts, str) else texts
        if not self.has_credentials():
            raise EmbeddingFailure(
                f"{self.get_engine_name()} embedding credentials not provided",
                stage="embed",
            )

        body = self.get_embed_payload(texts)
        try:
            response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        except httpx.HTTPError as exc:
            self.logging.error("Embedding request to %s failed: %s", self.get_engine_name(), exc)
            raise EmbeddingFailure(f"Embedding request failed: {exc}", stage="embed") from exc

        if not response.is_success:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise EmbeddingFailure(
                "Embedding request failed with status %d." % response.status_code,
                stage="embed",
            )

        try:
            vectors = self.extract_embeddings_from_response(response.json())
        except ValueError as exc:
            raise EmbeddingFailure(str(exc), stage="embed") from exc
        if len(vectors) != len(texts):
            raise EmbeddingFailure(
                "Embedding backend returned %d vectors for %d texts." % (len(vectors), len(texts)),
                stage="embed",
            )
        return vectors

    async def do_generate_embedding(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text (str): The text to embed.

        Returns:
            list[float]: The embedding vector.

        Raises:
            EmbeddingFailure: See do_embed().
        """
        vectors = await self.do_embed([text])
        return vectors[0]
