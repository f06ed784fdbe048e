"""
Tests for VectorStoreGateway: hash skip, stale chunk eviction, deletes and queries.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.orm.exc import StaleDataError

from services.indexing.IndexingErrors import ConcurrentStateModificationError, IndexMutationError, StateSaveError
from services.indexing.VectorStoreGateway import VectorStoreGateway
from shared.clients.rag.models.VectorRecord import VectorRecord
from shared.db.models.IndexingState import IndexingState
from shared.models.indexing import IndexQueryOptions, IndexSourceType


def _chunks(count: int, tag: str = "v1") -> list[str]:
    return [f"{tag} chunk {i}" for i in range(count)]


class TestUpsert:
    async def test_upsert_should_store_chunks_and_state(self, gateway, rag_client, state_repository, factory, page_job) -> None:
        # Arrange
        job = page_job()
        key = factory.build_source_key(job)
        prefix = factory.document_prefix(key)

        # Act
        await gateway.upsert(job, _chunks(3), "normalized v1")

        # Assert
        assert rag_client.ids_with_prefix(prefix) == [f"{prefix}-0", f"{prefix}-1", f"{prefix}-2"]
        state = await state_repository.find_by_source_key(key)
        assert state.chunk_count == 3
        assert state.document_prefix == prefix
        assert state.content_hash == factory.sha256_hex("normalized v1")

    async def test_upsert_should_skip_unchanged_content(self, gateway, rag_client, state_repository, factory, page_job) -> None:
        # Arrange
        job = page_job()
        await gateway.upsert(job, _chunks(2), "same text")
        before = await state_repository.find_by_source_key(factory.build_source_key(job))
        rag_client.operations.clear()

        # Act
        await gateway.upsert(job, _chunks(2), "same text")

        # Assert
        after = await state_repository.find_by_source_key(factory.build_source_key(job))
        assert rag_client.operations == []
        assert after.updated_at == before.updated_at
        assert after.version == before.version

    async def test_upsert_should_evict_trailing_chunks_when_content_shrinks(self, gateway, rag_client, factory, page_job) -> None:
        # Arrange
        job = page_job()
        prefix = factory.document_prefix(factory.build_source_key(job))
        await gateway.upsert(job, _chunks(5), "long text")
        rag_client.operations.clear()

        # Act
        await gateway.upsert(job, _chunks(3, "v2"), "short text")

        # Assert
        assert rag_client.operations == [
            ("delete", [f"{prefix}-3", f"{prefix}-4"]),
            ("add", [f"{prefix}-0", f"{prefix}-1", f"{prefix}-2"]),
        ]
        assert rag_client.ids_with_prefix(prefix) == [f"{prefix}-0", f"{prefix}-1", f"{prefix}-2"]

    async def test_upsert_should_not_delete_when_content_grows(self, gateway, rag_client, state_repository, factory, page_job) -> None:
        job = page_job()
        await gateway.upsert(job, _chunks(2), "short")
        rag_client.operations.clear()

        await gateway.upsert(job, _chunks(4, "v2"), "longer")

        assert [op for op, _ in rag_client.operations] == ["add"]
        state = await state_repository.find_by_source_key(factory.build_source_key(job))
        assert state.chunk_count == 4
        assert state.version == 1

    async def test_upsert_should_evict_all_chunks_under_old_prefix(self, gateway, rag_client, state_repository, factory, page_job) -> None:
        # Arrange
        job = page_job()
        key = factory.build_source_key(job)
        await state_repository.save(IndexingState(
            source_type="NOTION", team_id=7, api_path=job.api_path, resource_id="page-1",
            source_key=key, document_prefix="legacy", content_hash="old", chunk_count=2,
        ))
        for legacy_id in ("legacy-0", "legacy-1"):
            rag_client.records[legacy_id] = VectorRecord(id=legacy_id, text="old", metadata={"sourceKey": key})

        # Act
        await gateway.upsert(job, _chunks(1), "fresh")

        # Assert
        assert rag_client.operations[0] == ("delete", ["legacy-0", "legacy-1"])
        assert not [rid for rid in rag_client.records if rid.startswith("legacy-")]
        state = await state_repository.find_by_source_key(key)
        assert state.document_prefix == factory.document_prefix(key)

    async def test_concurrent_upserts_of_same_key_should_leave_index_and_state_in_agreement(
        self, gateway, rag_client, state_repository, factory, page_job
    ) -> None:
        # Arrange
        job = page_job()
        key = factory.build_source_key(job)
        prefix = factory.document_prefix(key)

        # Act
        await asyncio.gather(
            gateway.upsert(job, _chunks(4, "first"), "first text"),
            gateway.upsert(job, _chunks(2, "second"), "second text"),
        )

        # Assert
        states = await state_repository.find_all()
        assert len(states) == 1
        state = states[0]
        assert state.content_hash == factory.sha256_hex("second text")
        assert rag_client.ids_with_prefix(prefix) == [f"{prefix}-{i}" for i in range(state.chunk_count)]
        assert {r.metadata["contentHash"] for r in rag_client.records.values()} == {state.content_hash}
        assert state.version == 1

    async def test_upsert_should_ignore_empty_chunk_list(self, gateway, rag_client, state_repository, page_job) -> None:
        await gateway.upsert(page_job(), [], "")

        assert rag_client.operations == []
        assert await state_repository.find_all() == []

    async def test_upsert_should_keep_state_when_add_fails(self, gateway, rag_client, state_repository, page_job) -> None:
        rag_client.fail_add = True

        with pytest.raises(IndexMutationError):
            await gateway.upsert(page_job(), _chunks(2), "text")

        assert await state_repository.find_all() == []

    async def test_upsert_should_map_lost_update_to_conflict(self, helper_config, rag_client, state_repository, page_job) -> None:
        # Arrange
        state_repository.save = AsyncMock(side_effect=StaleDataError("version moved"))
        gateway = VectorStoreGateway(helper_config, rag_client, state_repository)

        # Act / Assert
        with pytest.raises(ConcurrentStateModificationError) as exc_info:
            await gateway.upsert(page_job(), _chunks(1), "text")
        assert isinstance(exc_info.value, StateSaveError)
        assert str(exc_info.value).startswith("[STATE_CONFLICT]")


class TestDeleteByResource:
    async def test_delete_by_resource_should_remove_chunks_and_state(self, gateway, rag_client, state_repository, page_job) -> None:
        # Arrange
        await gateway.upsert(page_job("page-1"), _chunks(3), "one")
        await gateway.upsert(page_job("page-2"), _chunks(2), "two")

        # Act
        removed = await gateway.delete_by_resource(7, "page-1", IndexSourceType.NOTION)

        # Assert
        assert removed == 1
        assert len(rag_client.records) == 2
        remaining = await state_repository.find_all()
        assert [s.resource_id for s in remaining] == ["page-2"]

    async def test_delete_by_resource_should_return_zero_for_unknown_resource(self, gateway) -> None:
        assert await gateway.delete_by_resource(7, "missing") == 0

    async def test_delete_by_resource_should_keep_state_when_backend_fails(self, gateway, rag_client, state_repository, page_job) -> None:
        await gateway.upsert(page_job("page-1"), _chunks(1), "one")
        rag_client.fail_delete = True

        with pytest.raises(IndexMutationError):
            await gateway.delete_by_resource(7, "page-1")

        assert len(await state_repository.find_all()) == 1


class TestQuery:
    async def test_query_should_return_nothing_for_blank_query(self, gateway, rag_client) -> None:
        assert await gateway.query(None) == []
        assert await gateway.query(IndexQueryOptions(query="   ")) == []
        assert rag_client.search_calls == []

    async def test_query_should_default_top_k_and_pass_filters(self, gateway, rag_client, page_job) -> None:
        # Arrange
        await gateway.upsert(page_job("page-1"), ["launch plan goals", "budget"], "a")
        await gateway.upsert(page_job("page-2"), ["launch party"], "b")

        # Act
        results = await gateway.query(IndexQueryOptions(query="launch plan", team_id=7, page_id="page-1"))

        # Assert
        assert rag_client.search_calls == [("launch plan", 4, "teamId == 7 && pageId == 'page-1'")]
        assert results[0].text == "launch plan goals"
        assert {r.metadata["pageId"] for r in results} == {"page-1"}

    def test_build_filter_expression_should_render_every_set_option(self) -> None:
        options = IndexQueryOptions(
            query="q",
            source_type=IndexSourceType.NOTION,
            team_id=3,
            api_path="GET /x",
            database_id="db-1",
            page_id="  ",
            last_edited_after=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )

        expression = VectorStoreGateway.build_filter_expression(options)

        assert expression == (
            "sourceType == 'NOTION' && teamId == 3 && apiPath == 'GET /x' && databaseId == 'db-1'"
            " && lastEditedTime >= '2024-01-02T00:00:00+00:00'"
        )

    def test_build_filter_expression_should_be_empty_without_filters(self) -> None:
        assert VectorStoreGateway.build_filter_expression(IndexQueryOptions(query="q")) == ""
