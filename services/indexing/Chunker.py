"""Splits normalized text into ordered, overlapping, size-bounded chunks."""

from services.indexing.IndexingErrors import ChunkFailureError

MIN_CHUNK_SIZE = 200
CHUNK_BOUNDARY_WINDOW = 120

_BOUNDARY_PUNCTUATION = frozenset(".,;:!?…。！？)]")


def _is_boundary(ch: str) -> bool:
    return ch.isspace() or ch in _BOUNDARY_PUNCTUATION


class Chunker:
    """Sliding-window chunker that prefers to cut right after whitespace or punctuation.

    The output is a pure function of (text, size, overlap): identical input
    always yields identical chunks, which is what keeps chunk ids stable.
    """

    def __init__(self, chunk_size: int = 1200, chunk_overlap: int = 200) -> None:
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk(self, text: str | None, size: int | None = None, overlap: int | None = None) -> list[str]:
        """Split text into chunks.

        Args:
            text (str | None): Normalized text.
            size (int | None): Target chunk length, floored at MIN_CHUNK_SIZE.
                Defaults to the configured chunk size.
            overlap (int | None): Characters repeated between consecutive chunks,
                clamped into [0, size - 1]. Defaults to the configured overlap.

        Returns:
            list[str]: Trimmed, non-blank chunks in document order.

        Raises:
            ChunkFailureError: If the window stops advancing.
        """
        if text is None or not text.strip():
            return []

        size = max(MIN_CHUNK_SIZE, self.chunk_size if size is None else size)
        overlap = self.chunk_overlap if overlap is None else overlap
        overlap = max(0, min(overlap, size - 1))

        chunks: list[str] = []
        length = len(text)
        start = 0
        while start < length:
            end = self._find_boundary(text, start, min(start + size, length))
            if end <= start:
                raise ChunkFailureError(f"chunk window stuck at offset {start} of {length}")

            piece = text[start:end].strip()
            if piece:
                chunks.append(piece)
            if end >= length:
                break

            next_start = end - overlap
            start = next_start if next_start > start else end
        return chunks

    @staticmethod
    def _find_boundary(text: str, start: int, hard_end: int) -> int:
        """Move the cut back onto the closest boundary within the last CHUNK_BOUNDARY_WINDOW chars."""
        if hard_end >= len(text):
            return hard_end
        window_start = max(start + 1, hard_end - CHUNK_BOUNDARY_WINDOW)
        for i in range(hard_end, window_start - 1, -1):
            if _is_boundary(text[i - 1]):
                return i
        return hard_end
