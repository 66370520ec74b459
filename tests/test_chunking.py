"""
Unit tests for word-window transcript chunking.
"""

import pytest

from services.transcript_ingest.chunking import (
    CHUNK_OVERLAP_WORDS,
    CHUNK_SIZE_WORDS,
    split_transcript,
    validate_chunking,
)
from shared.errors.pipeline_errors import ValidationError
from fakes import make_words


@pytest.mark.unit
class TestSplitTranscript:
    def test_defaults(self) -> None:
        assert CHUNK_SIZE_WORDS == 300
        assert CHUNK_OVERLAP_WORDS == 50

    def test_short_transcript_is_single_chunk(self) -> None:
        assert split_transcript("We met  at\tthe\ngarden.") == ["We met at the garden."]

    def test_exactly_one_window_is_single_chunk(self) -> None:
        text = make_words(300)
        assert split_transcript(text) == [text]

    def test_one_word_over_window_gives_two_chunks(self) -> None:
        words = make_words(301).split()
        chunks = split_transcript(" ".join(words))

        assert len(chunks) == 2
        assert chunks[0] == " ".join(words[0:300])
        assert chunks[1] == " ".join(words[250:301])

    def test_650_words(self) -> None:
        words = make_words(650).split()
        chunks = split_transcript(" ".join(words))

        assert len(chunks) == 3
        assert [len(chunk.split()) for chunk in chunks] == [300, 300, 150]
        assert chunks[2].split()[0] == "w500"
        assert chunks[2].split()[-1] == "w649"

    def test_consecutive_chunks_share_overlap(self) -> None:
        chunks = split_transcript(make_words(1000))

        for previous, current in zip(chunks, chunks[1:]):
            assert previous.split()[-50:] == current.split()[:50]

    def test_chunks_reconstruct_transcript(self) -> None:
        words = make_words(777).split()
        chunks = split_transcript(" ".join(words))

        rebuilt = chunks[0].split()
        for chunk in chunks[1:]:
            rebuilt.extend(chunk.split()[CHUNK_OVERLAP_WORDS:])
        assert rebuilt == words

    @pytest.mark.parametrize("text", ["", "   ", "\n\t \n"])
    def test_no_words_gives_no_chunks(self, text: str) -> None:
        assert split_transcript(text) == []

    def test_custom_window(self) -> None:
        chunks = split_transcript("a b c d e f g h i j", chunk_size_words=4, overlap_words=1)
        assert chunks == ["a b c d", "d e f g", "g h i j"]

    def test_zero_overlap(self) -> None:
        chunks = split_transcript("a b c d e", chunk_size_words=2, overlap_words=0)
        assert chunks == ["a b", "c d", "e"]


@pytest.mark.unit
class TestValidateChunking:
    @pytest.mark.parametrize(
        "size,overlap",
        [(0, 0), (-5, 0), (10, -1), (50, 50), (50, 60)],
    )
    def test_invalid_windows_are_rejected(self, size: int, overlap: int) -> None:
        with pytest.raises(ValidationError):
            validate_chunking(size, overlap)

    def test_split_rejects_invalid_window(self) -> None:
        with pytest.raises(ValueError):
            split_transcript("some words here", chunk_size_words=3, overlap_words=3)

    def test_valid_window(self) -> None:
        validate_chunking(300, 50)
        validate_chunking(1, 0)
