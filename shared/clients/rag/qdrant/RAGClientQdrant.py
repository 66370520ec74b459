from typing import Any

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.Scroll import ScrollResult
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="note_transcript_embeddings", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="note_transcript_embeddings")
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    def _get_endpoint_set_payload(self) -> str:
        return f"/collections/{self._collection_name}/points/payload"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_create_index(self) -> str:
        return f"/collections/{self._collection_name}/index"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_match_filter(self, conditions: dict[str, Any]) -> dict:
        return {"must": [{"key": key, "match": {"value": value}} for key, value in conditions.items()]}

    def get_upsert_payload(self, points: list[dict]) -> dict:
        return {"points": points}

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    def get_count_payload(self, filter: dict) -> dict:
        return {"filter": filter, "exact": True}

    def get_search_payload(self, query_vector: list[float], filter: dict, limit: int) -> dict:
        return {
            "vector": query_vector,
            "filter": filter,
            "limit": limit,
            "with_payload": ["transcript_chunk", "note_id", "folder_id", "chunk_index"],
            "with_vector": False,
        }

    def get_scroll_payload(self, filter: dict, with_vector: bool, limit: int, offset: str | int | None = None) -> dict:
        payload = {
            "filter": filter,
            "limit": limit,
            "with_payload": True,
            "with_vector": with_vector,
        }
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_set_payload_payload(self, payload: dict, filter: dict) -> dict:
        return {"payload": payload, "filter": filter}

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {"vectors": {"size": vector_size, "distance": distance}}

    def get_create_index_payload(self, field_name: str) -> dict:
        return {"field_name": field_name, "field_schema": "integer"}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        return raw_response.get("result") or []

    def extract_scroll_content(self, raw_response: dict) -> ScrollResult:
        result = raw_response.get("result") or {}
        return ScrollResult(
            result=result.get("points", []),
            status=raw_response.get("status", "ok"),
            time=raw_response.get("time", 0),
            next_page_offset=result.get("next_page_offset"),
        )

    def extract_count(self, raw_response: dict) -> int:
        return int((raw_response.get("result") or {}).get("count", 0))

    def extract_collection_exists(self, raw_response: dict) -> bool:
        return bool((raw_response.get("result") or {}).get("exists"))
