"""
Tests for Chunker: size bounds, boundary preference, overlap and determinism.
"""

import pytest

from services.indexing.Chunker import MIN_CHUNK_SIZE, Chunker


class TestChunker:
    """Test suite for Chunker.chunk."""

    @pytest.mark.parametrize("text", [None, "", "   \n\t "])
    def test_chunk_should_return_nothing_for_blank_text(self, text) -> None:
        assert Chunker().chunk(text) == []

    def test_chunk_should_return_single_trimmed_chunk_for_short_text(self) -> None:
        assert Chunker().chunk("  [Page]\nTitle: Launch plan  \n") == ["[Page]\nTitle: Launch plan"]

    def test_chunk_should_cut_hard_when_no_boundary_exists(self) -> None:
        # Arrange
        text = "a" * 500

        # Act
        chunks = Chunker(chunk_size=200, chunk_overlap=0).chunk(text)

        # Assert
        assert [len(c) for c in chunks] == [200, 200, 100]

    def test_chunk_should_repeat_overlap_between_consecutive_chunks(self) -> None:
        chunks = Chunker(chunk_size=200, chunk_overlap=50).chunk("a" * 500)

        assert [len(c) for c in chunks] == [200, 200, 200]

    def test_chunk_should_prefer_cutting_after_whitespace(self) -> None:
        # Arrange
        text = "x" * 150 + " " + "y" * 300

        # Act
        chunks = Chunker(chunk_size=200, chunk_overlap=0).chunk(text)

        # Assert
        assert chunks == ["x" * 150, "y" * 200, "y" * 100]

    def test_chunk_should_prefer_cutting_after_punctuation(self) -> None:
        text = "b" * 190 + "." + "c" * 100

        chunks = Chunker(chunk_size=200, chunk_overlap=0).chunk(text)

        assert chunks[0] == "b" * 190 + "."

    def test_chunk_should_floor_size_at_minimum(self) -> None:
        chunks = Chunker().chunk("a" * 1000, size=10, overlap=0)

        assert all(len(c) == MIN_CHUNK_SIZE for c in chunks)
        assert len(chunks) == 5

    def test_chunk_should_clamp_overlap_below_size_and_terminate(self) -> None:
        chunks = Chunker().chunk("a" * 500, size=200, overlap=1000)

        # overlap becomes 199, so the window advances one char at a time
        assert len(chunks) == 301
        assert chunks[-1] == "a" * 200

    def test_chunk_should_keep_chunks_within_size(self) -> None:
        text = " ".join(f"word{i}" for i in range(2000))

        chunks = Chunker(chunk_size=300, chunk_overlap=60).chunk(text)

        assert len(chunks) > 1
        assert all(0 < len(c) <= 300 for c in chunks)
        assert chunks[0].startswith("word0 ")
        assert chunks[-1].endswith("word1999")

    def test_chunk_should_be_deterministic(self) -> None:
        text = "\n".join(f"line {i}: some normalized content." for i in range(400))
        chunker = Chunker(chunk_size=500, chunk_overlap=80)

        assert chunker.chunk(text) == chunker.chunk(text)

    def test_chunk_should_split_2500_chars_into_three_overlapping_chunks(self) -> None:
        chunks = Chunker(chunk_size=1200, chunk_overlap=200).chunk("a" * 2500)

        assert [len(c) for c in chunks] == [1200, 1200, 500]

    def test_chunk_should_overlap_200_chars_at_each_junction_for_2500_chars(self) -> None:
        # Arrange
        text = "".join(f"{i:04d}" for i in range(625))

        # Act
        chunks = Chunker(chunk_size=1200, chunk_overlap=200).chunk(text)

        # Assert
        starts = [text.index(chunk) for chunk in chunks]
        assert starts == [0, 1000, 2000]
        assert [len(c) for c in chunks] == [1200, 1200, 500]
        assert chunks[1][:200] == chunks[0][-200:]
        assert chunks[2][:200] == chunks[1][-200:]

    def test_chunk_should_cover_every_character_of_mixed_text(self) -> None:
        # Arrange
        text = " ".join(
            f"Sentence {i} covers item {i * 7}{'!' if i % 3 else '.'}" + ("\n" if i % 5 == 0 else "")
            for i in range(300)
        )

        # Act
        chunks = Chunker(chunk_size=400, chunk_overlap=80).chunk(text)

        # Assert
        covered = [False] * len(text)
        spans: list[tuple[int, int]] = []
        cursor = 0
        for chunk in chunks:
            start = text.find(chunk, cursor)
            assert start >= 0
            spans.append((start, start + len(chunk)))
            for offset in range(start, start + len(chunk)):
                covered[offset] = True
            cursor = start + 1
        assert all(covered[i] for i, ch in enumerate(text) if not ch.isspace())
        overlaps = [prev_end - next_start for (_, prev_end), (next_start, _) in zip(spans, spans[1:])]
        assert all(70 <= overlap <= 80 for overlap in overlaps)
