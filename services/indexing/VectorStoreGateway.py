"""Vector store gateway.

Applies add/delete operations to the RAG backend and keeps the indexing
state store consistent with what the backend holds:

* unchanged content (same hash) causes no backend mutation at all,
* shrinking content evicts the trailing chunk ids,
* a changed document prefix evicts every chunk under the old prefix.

Index mutation and state save are two separate systems and are not atomic.
A crash between them leaves a gap that IndexReconciler detects and repairs.
"""

import asyncio
import weakref

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from services.indexing.DocumentFactory import DocumentFactory
from services.indexing.IndexingErrors import ConcurrentStateModificationError, IndexMutationError, StateSaveError
from shared.clients.rag import FilterExpression
from shared.clients.rag.FilterExpression import FilterClause
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorRecord import ScoredVectorRecord
from shared.db.IndexingStateRepository import IndexingStateRepository
from shared.db.models.IndexingState import IndexingState
from shared.helper.HelperConfig import HelperConfig
from shared.models.indexing import IndexJob, IndexQueryOptions, IndexSourceType

DEFAULT_TOP_K = 4


class VectorStoreGateway:
    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        state_repository: IndexingStateRepository,
        document_factory: DocumentFactory | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._states = state_repository
        self._factory = document_factory or DocumentFactory()
        # one lock per source key, dropped once nobody holds or waits on it
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock_for(self, source_key: str) -> asyncio.Lock:
        lock = self._locks.get(source_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[source_key] = lock
        return lock

    ##########################################
    ################ UPSERT ##################
    ##########################################

    async def upsert(self, job: IndexJob, chunks: list[str], normalized_text: str) -> None:
        """Bring the index in line with the given chunks of a job.

        Args:
            job (IndexJob): The job the chunks came from.
            chunks (list[str]): Chunks of normalized_text in document order.
            normalized_text (str): The text whose hash is recorded.

        Raises:
            IndexMutationError: If the backend rejected a delete or add.
            StateSaveError: If the state could not be read or saved.
        """
        if not chunks:
            return

        source_key = self._factory.build_source_key(job)
        prefix = self._factory.document_prefix(source_key)
        content_hash = self._factory.sha256_hex(normalized_text)

        lock = self.lock_for(source_key)
        async with lock:
            state = await self._load_state(source_key)
            if state is not None and state.content_hash == content_hash:
                self.logging.debug("INDEX: unchanged sourceKey=%s, skipping", source_key)
                return

            await self._delete_stale_chunks(state, prefix, len(chunks))

            records = self._factory.to_vector_records(job, source_key, prefix, chunks, content_hash)
            try:
                await self._rag_client.do_add(records)
            except Exception as e:
                raise IndexMutationError(f"add of {len(records)} chunks failed for sourceKey={source_key}", e)

            if state is None:
                state = IndexingState(
                    source_type=job.source_type.value,
                    team_id=job.team_id,
                    api_path=job.api_path,
                    resource_id=job.resource_id,
                    source_key=source_key,
                    document_prefix=prefix,
                    content_hash=content_hash,
                    chunk_count=len(chunks),
                )
            else:
                state.refresh(job.source_type.value, job.api_path, job.resource_id, content_hash, len(chunks))
                # the stored chunks now live under the current prefix
                state.document_prefix = prefix
            await self._save_state(state)

        self.logging.info(
            "INDEX: upserted sourceType=%s teamId=%s apiPath=%s resourceId=%s chunks=%d",
            job.source_type.value, job.team_id, job.api_path, job.resource_id, len(chunks),
        )

    async def _delete_stale_chunks(self, state: IndexingState | None, prefix: str, new_chunk_count: int) -> None:
        if state is None or state.chunk_count <= 0:
            return
        if state.document_prefix != prefix:
            stale_ids = self._factory.chunk_ids(state.document_prefix, 0, state.chunk_count)
        elif state.chunk_count > new_chunk_count:
            stale_ids = self._factory.chunk_ids(prefix, new_chunk_count, state.chunk_count)
        else:
            return
        try:
            await self._rag_client.do_delete(stale_ids)
        except Exception as e:
            raise IndexMutationError(f"delete of {len(stale_ids)} stale chunks failed for sourceKey={state.source_key}", e)
        self.logging.debug("INDEX: evicted %d stale chunks sourceKey=%s", len(stale_ids), state.source_key)

    async def _load_state(self, source_key: str) -> IndexingState | None:
        try:
            return await self._states.find_by_source_key(source_key)
        except SQLAlchemyError as e:
            raise StateSaveError(f"state lookup failed for sourceKey={source_key}", e)

    async def _save_state(self, state: IndexingState) -> None:
        try:
            await self._states.save(state)
        except (IntegrityError, StaleDataError) as e:
            raise ConcurrentStateModificationError(f"state of sourceKey={state.source_key} changed concurrently", e)
        except SQLAlchemyError as e:
            raise StateSaveError(f"state save failed for sourceKey={state.source_key}", e)

    ##########################################
    ################ DELETE ##################
    ##########################################

    async def delete_by_resource(
        self,
        team_id: int,
        resource_id: str,
        source_type: IndexSourceType = IndexSourceType.NOTION,
    ) -> int:
        """Remove every chunk and state row recorded for a resource.

        Covers all api paths the resource was indexed through.

        Args:
            team_id (int): Tenant id.
            resource_id (str): Resource id, e.g. a Notion page id.
            source_type (IndexSourceType): Source type of the resource.

        Returns:
            int: Number of source keys removed.

        Raises:
            IndexMutationError: If the backend rejected the delete. The state row is kept.
            StateSaveError: If the state could not be read or deleted.
        """
        try:
            states = await self._states.find_by_resource(source_type.value, team_id, resource_id)
        except SQLAlchemyError as e:
            raise StateSaveError(f"state lookup failed for teamId={team_id} resourceId={resource_id}", e)

        removed = 0
        for found in states:
            lock = self.lock_for(found.source_key)
            async with lock:
                # re-read under the lock, an upsert may have changed the row meanwhile
                state = await self._load_state(found.source_key)
                if state is None:
                    continue
                ids = self._factory.chunk_ids(state.document_prefix, 0, state.chunk_count)
                try:
                    await self._rag_client.do_delete(ids)
                except Exception as e:
                    raise IndexMutationError(f"delete of {len(ids)} chunks failed for sourceKey={state.source_key}", e)
                try:
                    await self._states.delete(state)
                except SQLAlchemyError as e:
                    raise StateSaveError(f"state delete failed for sourceKey={state.source_key}", e)
                removed += 1
            self.logging.info("INDEX: deleted sourceKey=%s chunks=%d", state.source_key, state.chunk_count)
        return removed

    ##########################################
    ################# QUERY ##################
    ##########################################

    async def query(self, options: IndexQueryOptions | None) -> list[ScoredVectorRecord]:
        """Similarity search restricted by the metadata filters of the options.

        Args:
            options (IndexQueryOptions | None): Query text, top_k and filters.

        Returns:
            list[ScoredVectorRecord]: Matches, best first. Empty for a missing or blank query.
        """
        if options is None or not options.query or not options.query.strip():
            return []
        top_k = options.top_k if options.top_k and options.top_k > 0 else DEFAULT_TOP_K
        expression = self.build_filter_expression(options)
        return await self._rag_client.do_similarity_search(options.query, top_k, expression or None)

    @staticmethod
    def build_filter_expression(options: IndexQueryOptions) -> str:
        """Render the option filters as one "&&"-joined expression, "" if none is set."""
        clauses: list[FilterClause] = []
        if options.source_type is not None:
            clauses.append(FilterClause(field="sourceType", operator="==", value=options.source_type.value))
        if options.team_id is not None:
            clauses.append(FilterClause(field="teamId", operator="==", value=options.team_id))
        for field, value in (
            ("apiPath", options.api_path),
            ("databaseId", options.database_id),
            ("pageId", options.page_id),
        ):
            if value and value.strip():
                clauses.append(FilterClause(field=field, operator="==", value=value))
        if options.last_edited_after is not None:
            clauses.append(
                FilterClause(field="lastEditedTime", operator=">=", value=options.last_edited_after.isoformat())
            )
        return FilterExpression.render(clauses)
