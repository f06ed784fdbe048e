"""
IndexingState ORM model: what was last indexed for one source key.

Dependencies: sqlalchemy
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shared.db.base import Base, utc_now


class IndexingState(Base):
    """
    Last successfully indexed content of one source document.

    Attributes:
        id: Surrogate primary key.
        source_type: Normalizer tag, e.g. "NOTION".
        team_id: Tenant id.
        api_path: Logical read endpoint.
        resource_id: Resource id, None for collection reads.
        source_key: Composite identity, unique.
        document_prefix: Chunk id namespace derived from the source key.
        content_hash: SHA-256 hex of the normalized text behind the stored chunks.
        chunk_count: Number of chunks currently stored under the prefix.
        updated_at: Time of the last successful upsert (UTC).
        version: Optimistic lock counter, bumped on every update.

    Constraints:
        source_key: UNIQUE (uk_indexing_state_source_key)
    """

    __tablename__ = "indexing_state"
    __table_args__ = (UniqueConstraint("source_key", name="uk_indexing_state_source_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_type: Mapped[str] = mapped_column(String(30), nullable=False)
    team_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    api_path: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_key: Mapped[str] = mapped_column(String(700), nullable=False)
    document_prefix: Mapped[str] = mapped_column(String(64), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    chunk_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def refresh(
        self,
        source_type: str,
        api_path: str,
        resource_id: str | None,
        content_hash: str,
        chunk_count: int,
    ) -> None:
        """Overwrite the mutable fields after a successful re-index."""
        self.source_type = source_type
        self.api_path = api_path
        self.resource_id = resource_id
        self.content_hash = content_hash
        self.chunk_count = chunk_count
        self.updated_at = utc_now()

    def __repr__(self) -> str:
        return f"<IndexingState source_key={self.source_key!r} chunks={self.chunk_count} v{self.version}>"
