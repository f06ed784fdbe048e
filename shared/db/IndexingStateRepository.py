"""
Persistence operations for IndexingState rows.

Every method runs in its own short session and returns detached instances,
so callers can hold on to them across awaits.

Dependencies: sqlalchemy
"""

from typing import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.orm.exc import StaleDataError

from shared.db.StateStore import StateStore
from shared.db.models.IndexingState import IndexingState


class IndexingStateRepository:
    def __init__(self, state_store: StateStore) -> None:
        self._store = state_store

    async def find_by_source_key(self, source_key: str) -> IndexingState | None:
        async with self._store.session() as session:
            result = await session.execute(select(IndexingState).where(IndexingState.source_key == source_key))
            return result.scalar_one_or_none()

    async def find_by_resource(self, source_type: str, team_id: int, resource_id: str) -> Sequence[IndexingState]:
        """Return every state row of a resource, regardless of the api path it was read through."""
        stmt = select(IndexingState).where(
            IndexingState.source_type == source_type,
            IndexingState.team_id == team_id,
            IndexingState.resource_id == resource_id,
        )
        async with self._store.session() as session:
            result = await session.execute(stmt)
            return result.scalars().all()

    async def find_all(self) -> Sequence[IndexingState]:
        async with self._store.session() as session:
            result = await session.execute(select(IndexingState).order_by(IndexingState.id))
            return result.scalars().all()

    async def save(self, state: IndexingState) -> IndexingState:
        """Insert a new row or update an existing one.

        Updates are conditional on the version the caller read. A concurrent
        writer that got there first makes the update match no row.

        Args:
            state (IndexingState): New (id is None) or previously loaded row.

        Returns:
            IndexingState: The saved row with its new id/version.

        Raises:
            sqlalchemy.exc.IntegrityError: If another writer inserted the same source key.
            StaleDataError: If the row changed or vanished since it was read.
        """
        async with self._store.session() as session:
            if state.id is None:
                state.version = 0
                session.add(state)
                await session.commit()
                return state

            expected = state.version
            stmt = (
                update(IndexingState)
                .where(IndexingState.id == state.id, IndexingState.version == expected)
                .values(
                    source_type=state.source_type,
                    api_path=state.api_path,
                    resource_id=state.resource_id,
                    document_prefix=state.document_prefix,
                    content_hash=state.content_hash,
                    chunk_count=state.chunk_count,
                    updated_at=state.updated_at,
                    version=expected + 1,
                )
            )
            result = await session.execute(stmt)
            if result.rowcount != 1:
                await session.rollback()
                raise StaleDataError(
                    f"IndexingState {state.source_key!r} was modified concurrently (expected version {expected})"
                )
            await session.commit()
            state.version = expected + 1
            return state

    async def delete(self, state: IndexingState) -> None:
        async with self._store.session() as session:
            await session.execute(delete(IndexingState).where(IndexingState.id == state.id))
            await session.commit()
