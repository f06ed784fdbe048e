"""VectorRecord model: one chunk as stored in, and returned from, a RAG backend."""

from typing import Any

from pydantic import BaseModel, Field


class VectorRecord(BaseModel):
    """A chunk addressed by its logical id.

    Attributes:
        id:       Logical chunk id, "<document prefix>-<chunk index>".
        text:     The chunk text that gets embedded.
        metadata: Flat metadata used for filtering and display.
    """

    id: str
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScoredVectorRecord(VectorRecord):
    """A VectorRecord returned by a similarity search, with its similarity score."""

    score: float = 0.0
