"""Ingest runner entry point.

One-shot ingestion of a single transcript file, e.g. to backfill notes that
were recorded while the API was down. The run is synchronous: the process
exits with status 1 if the ingestion fails.

Usage:
    python -m services.transcript_ingest.ingest_runner --note-id 12 --folder-id 3 transcript.txt
    cat transcript.txt | python -m services.transcript_ingest.ingest_runner --note-id 12 -
"""

import argparse
import asyncio
import sys

from services.transcript_ingest.IngestService import IngestService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.errors.pipeline_errors import PipelineError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chunk, embed and store the transcript of one note.")
    parser.add_argument("--note-id", type=int, required=True, help="ID of the note owning the transcript (>= 1)")
    parser.add_argument("--folder-id", type=int, default=0, help="Folder of the note, 0 if it has none")
    parser.add_argument("transcript", help="Path to the transcript text file, or '-' for stdin")
    return parser.parse_args(argv)


def read_transcript(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as handle:
        return handle.read()


async def main(argv: list[str] | None = None) -> int:
    """Run a single ingestion. Returns the process exit code."""
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    embed_client = EmbedClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()

    try:
        # embed client is required, there is no point in storing without vectors
        try:
            await embed_client.boot()
            await embed_client.do_healthcheck()
        except Exception as e:
            logger.error(f"Error booting Embed client {embed_client.get_engine_name()}: {e}. Aborting.")
            return 1

        try:
            await rag_client.boot()
            await rag_client.do_healthcheck()
        except Exception as e:
            logger.error(f"Error booting RAG client {rag_client.get_engine_name()}: {e}. Aborting.")
            return 1

        try:
            transcript = read_transcript(args.transcript)
        except OSError as e:
            logger.error(f"Cannot read transcript {args.transcript!r}: {e}. Aborting.")
            return 1

        try:
            vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
            await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)

            ingest_service = IngestService(
                helper_config=config,
                rag_client=rag_client,
                embed_client=embed_client,
            )
            result = await ingest_service.do_ingest(transcript, args.note_id, args.folder_id)
        except PipelineError as e:
            logger.error(f"Ingestion of note {args.note_id} failed: {e}")
            return 1

        logger.info(
            "Stored %d chunks for note %d (replaced %d).",
            result.stored_chunks, result.note_id, result.deleted_chunks,
        )
        return 0
    finally:
        await embed_client.close()
        await rag_client.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
