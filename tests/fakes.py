"""
In-process fakes of the vector store and the Ollama backends.

Served through httpx.MockTransport, so the real clients (payload builders,
response parsers, error translation) run unchanged in tests.
"""

import json
import math
import re

import httpx

QDRANT_URL = "http://qdrant.test"
EMBED_URL = "http://embed.test"
LLM_URL = "http://llm.test"
COLLECTION = "note_transcript_embeddings"
API_KEY = "test-api-key"

# keyword axes of the fake embedding space
VOCABULARY = ["budget", "travel", "garden", "meeting"]


# ============================================================================
# Helpers
# ============================================================================


def make_words(count: int, prefix: str = "w") -> str:
    """Return a transcript of `count` distinct, numbered words."""
    return " ".join(f"{prefix}{i}" for i in range(count))


def fake_vector(text: str) -> list[float]:
    """Deterministic 4-dim embedding: keyword counts plus a small baseline."""
    words = re.findall(r"[a-z]+", text.lower())
    return [float(words.count(term)) + 0.01 for term in VOCABULARY]


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


# ============================================================================
# Fake backends
# ============================================================================


class FakeQdrant:
    """Minimal in-memory Qdrant REST server.

    Failures can be injected per operation via `fail_on`, e.g.
    fake.fail_on["insert"] = "timeout" or fake.fail_on["search"] = 500.
    """

    def __init__(self) -> None:
        self.collection_exists = False
        self.vector_size: int | None = None
        self.indexes: list[str] = []
        self.points: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_on: dict[str, str | int] = {}

    @staticmethod
    def _matches(payload: dict, filter: dict | None) -> bool:
        for condition in (filter or {}).get("must", []):
            if payload.get(condition["key"]) != condition["match"]["value"]:
                return False
        return True

    def _select(self, filter: dict | None) -> list[dict]:
        return [point for point in self.points.values() if self._matches(point["payload"], filter)]

    def _operation(self, request: httpx.Request) -> str:
        path = request.url.path
        base = f"/collections/{COLLECTION}"
        routes = {
            ("GET", "/healthz"): "healthcheck",
            ("GET", f"{base}/exists"): "exists",
            ("PUT", base): "create_collection",
            ("PUT", f"{base}/index"): "create_index",
            ("PUT", f"{base}/points"): "insert",
            ("POST", f"{base}/points/delete"): "delete",
            ("POST", f"{base}/points/count"): "count",
            ("POST", f"{base}/points/search"): "search",
            ("POST", f"{base}/points/scroll"): "scroll",
            ("POST", f"{base}/points/payload"): "set_payload",
        }
        return routes.get((request.method, path), "unknown")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        operation = self._operation(request)

        failure = self.fail_on.get(operation)
        if failure == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if isinstance(failure, int):
            return httpx.Response(failure, json={"status": {"error": "injected failure"}})

        body = json.loads(request.content) if request.content else {}

        if operation == "healthcheck":
            return httpx.Response(200, text="healthz check passed")
        if operation == "exists":
            return httpx.Response(200, json={"result": {"exists": self.collection_exists}, "status": "ok"})
        if operation == "create_collection":
            self.collection_exists = True
            self.vector_size = body["vectors"]["size"]
            return httpx.Response(200, json={"result": True, "status": "ok"})
        if operation == "create_index":
            self.indexes.append(body["field_name"])
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        if operation == "insert":
            for point in body["points"]:
                if self.vector_size is not None and len(point["vector"]) != self.vector_size:
                    return httpx.Response(400, json={"status": {"error": "Wrong input: Vector dimension error"}})
                self.points[point["id"]] = point
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        if operation == "delete":
            for point in self._select(body.get("filter")):
                del self.points[point["id"]]
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        if operation == "count":
            return httpx.Response(200, json={"result": {"count": len(self._select(body.get("filter")))}, "status": "ok"})
        if operation == "search":
            hits = [
                {"id": point["id"], "score": cosine(body["vector"], point["vector"]), "payload": point["payload"]}
                for point in self._select(body.get("filter"))
            ]
            hits.sort(key=lambda hit: hit["score"], reverse=True)
            return httpx.Response(200, json={"result": hits[: body["limit"]], "status": "ok"})
        if operation == "scroll":
            selected = sorted(self._select(body.get("filter")), key=lambda point: point["id"])
            offset = body.get("offset") or 0
            page = selected[offset : offset + body["limit"]]
            next_offset = offset + body["limit"] if offset + body["limit"] < len(selected) else None
            points = [
                {
                    "id": point["id"],
                    "payload": point["payload"],
                    **({"vector": point["vector"]} if body.get("with_vector") else {}),
                }
                for point in page
            ]
            return httpx.Response(200, json={"result": {"points": points, "next_page_offset": next_offset}, "status": "ok"})
        if operation == "set_payload":
            for point in self._select(body.get("filter")):
                point["payload"].update(body["payload"])
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        return httpx.Response(404, json={"status": {"error": "Not found"}})

    def requests_for(self, operation: str) -> list[httpx.Request]:
        return [request for request in self.requests if self._operation(request) == operation]


class FakeOllama:
    """In-memory Ollama server for /api/embed and /api/chat.

    `fail_embed_calls` holds the 1-based numbers of embedding calls that
    answer with 500, `chat_status` forces the status of every chat call.
    """

    def __init__(self, answer: str = "The budget was approved.") -> None:
        self.answer = answer
        self.embed_calls = 0
        self.fail_embed_calls: set[int] = set()
        self.chat_status = 200
        self.chat_requests: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/embed":
            self.embed_calls += 1
            if self.embed_calls in self.fail_embed_calls:
                return httpx.Response(500, json={"error": "model crashed"})
            body = json.loads(request.content)
            return httpx.Response(200, json={"model": body["model"], "embeddings": [fake_vector(text) for text in body["input"]]})
        if request.url.path == "/api/chat":
            self.chat_requests.append(json.loads(request.content))
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": "overloaded"})
            return httpx.Response(200, json={"message": {"role": "assistant", "content": self.answer}, "done": True})
        return httpx.Response(200, text="Ollama is running")

    def last_prompt(self) -> str:
        return self.chat_requests[-1]["messages"][-1]["content"]


