"""
Tests for the one-shot ingestion command line entry point.

Clients are built from the environment as in production; only their HTTP
transport is swapped for the in-process fakes.
"""

from pathlib import Path

import httpx
import pytest

from fakes import QDRANT_URL, FakeOllama, FakeQdrant, make_words
from services.transcript_ingest import ingest_runner
from shared.clients.ClientInterface import ClientInterface


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def fake_backends(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, fake_qdrant: FakeQdrant, fake_ollama: FakeOllama
) -> None:
    monkeypatch.setenv("ROOT_DIR", str(tmp_path))
    qdrant_host = httpx.URL(QDRANT_URL).host

    def route(request: httpx.Request) -> httpx.Response:
        if request.url.host == qdrant_host:
            return fake_qdrant.handler(request)
        return fake_ollama.handler(request)

    original_boot = ClientInterface.boot

    async def boot_with_fakes(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        await original_boot(self, transport=httpx.MockTransport(route))

    monkeypatch.setattr(ClientInterface, "boot", boot_with_fakes)


@pytest.fixture
def transcript_file(tmp_path: Path) -> Path:
    path = tmp_path / "note.txt"
    path.write_text(make_words(650), encoding="utf-8")
    return path


# ============================================================================
# Exit codes
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_successful_run_exits_zero(transcript_file: Path, fake_qdrant: FakeQdrant) -> None:
    exit_code = await ingest_runner.main(["--note-id", "5", "--folder-id", "2", str(transcript_file)])

    assert exit_code == 0
    payloads = [point["payload"] for point in fake_qdrant.points.values()]
    assert len(payloads) == 3
    assert all(payload["note_id"] == 5 and payload["folder_id"] == 2 for payload in payloads)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_pipeline_exits_one(transcript_file: Path, fake_qdrant: FakeQdrant) -> None:
    fake_qdrant.fail_on["insert"] = 500

    exit_code = await ingest_runner.main(["--note-id", "5", str(transcript_file)])

    assert exit_code == 1
    assert fake_qdrant.points == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unreadable_transcript_exits_one(tmp_path: Path, fake_qdrant: FakeQdrant) -> None:
    exit_code = await ingest_runner.main(["--note-id", "5", str(tmp_path / "missing.txt")])

    assert exit_code == 1
    assert fake_qdrant.requests_for("delete") == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unreachable_store_exits_one(transcript_file: Path, fake_qdrant: FakeQdrant, fake_ollama: FakeOllama) -> None:
    fake_qdrant.fail_on["healthcheck"] = 503

    exit_code = await ingest_runner.main(["--note-id", "5", str(transcript_file)])

    assert exit_code == 1
    assert fake_ollama.embed_calls == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_note_id_exits_one(transcript_file: Path, fake_qdrant: FakeQdrant) -> None:
    exit_code = await ingest_runner.main(["--note-id", "0", str(transcript_file)])

    assert exit_code == 1
    assert fake_qdrant.points == {}
