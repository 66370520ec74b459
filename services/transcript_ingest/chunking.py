"""Word-window chunking of transcripts."""

from shared.errors.pipeline_errors import ValidationError

CHUNK_SIZE_WORDS = 300     # words per chunk
CHUNK_OVERLAP_WORDS = 50   # words shared by consecutive chunks


def validate_chunking(chunk_size_words: int, overlap_words: int) -> None:
    """Reject window settings that would never advance.

    Raises:
        ValidationError: If chunk_size_words < 1, overlap_words < 0 or
            overlap_words >= chunk_size_words.
    """
    if chunk_size_words < 1:
        raise ValidationError(f"chunk size must be at least 1 word, got {chunk_size_words}")
    if overlap_words < 0:
        raise ValidationError(f"overlap must not be negative, got {overlap_words}")
    if overlap_words >= chunk_size_words:
        raise ValidationError(
            f"overlap ({overlap_words}) must be smaller than the chunk size ({chunk_size_words})"
        )


def split_transcript(
    text: str,
    chunk_size_words: int = CHUNK_SIZE_WORDS,
    overlap_words: int = CHUNK_OVERLAP_WORDS,
) -> list[str]:
    """Split a transcript into overlapping, word-bounded chunks.

    Words are whitespace separated and re-joined with single spaces. A
    transcript that fits into one window comes back as a single chunk; longer
    ones are covered by windows whose start advances by
    chunk_size_words - overlap_words, the last window possibly shorter.

    Args:
        text (str): The full transcript.
        chunk_size_words (int): Maximum number of words per chunk.
        overlap_words (int): Words repeated at the start of the next chunk.

    Returns:
        list[str]: Ordered, non-blank chunks. Empty for a transcript without words.

    Raises:
        ValidationError: If the window settings are invalid.
    """
    validate_chunking(chunk_size_words, overlap_words)

    words = text.split()
    if not words:
        return []
    if len(words) <= chunk_size_words:
        return [" ".join(words)]

    step = chunk_size_words - overlap_words
    chunks: list[str] = []
    start = 0
    while True:
        end = min(start + chunk_size_words, len(words))
        chunks.append(" ".join(words[start:end]))
        if end == len(words):
            break
        start += step
    return chunks
