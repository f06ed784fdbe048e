"""
Tests for IndexReconciler: count and content mismatches, orphaned points.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from services.indexing.IndexReconciler import IndexReconciler
from services.indexing.IndexingErrors import StateSaveError
from shared.clients.rag.models.VectorRecord import VectorRecord


def _reconciler(helper_config, rag_client, state_repository, gateway) -> IndexReconciler:
    return IndexReconciler(helper_config, rag_client, state_repository, gateway.lock_for)


class TestIndexReconciler:
    async def test_sweep_should_leave_consistent_index_alone(self, helper_config, gateway, rag_client, state_repository, page_job) -> None:
        await gateway.upsert(page_job(), ["a", "b"], "text")

        report = await _reconciler(helper_config, rag_client, state_repository, gateway).do_verify_and_repair()

        assert (report.checked, report.mismatched, report.orphaned, report.failed) == (1, 0, 0, 0)
        assert len(rag_client.records) == 2

    async def test_sweep_should_reset_source_key_with_missing_points(self, helper_config, gateway, rag_client, state_repository, page_job) -> None:
        # Arrange
        await gateway.upsert(page_job(), ["a", "b", "c"], "text")
        rag_client.records.pop(sorted(rag_client.records)[0])

        # Act
        report = await _reconciler(helper_config, rag_client, state_repository, gateway).do_verify_and_repair()

        # Assert
        assert report.mismatched == 1
        assert rag_client.records == {}
        assert await state_repository.find_all() == []

    async def test_sweep_should_delete_points_without_state(self, helper_config, gateway, rag_client, state_repository, page_job) -> None:
        # Arrange
        await gateway.upsert(page_job("page-1"), ["kept"], "text")
        rag_client.records["orphan-0"] = VectorRecord(id="orphan-0", text="x", metadata={"sourceKey": "NOTION|7|GET /gone|p"})
        rag_client.records["orphan-1"] = VectorRecord(id="orphan-1", text="y", metadata={"sourceKey": "NOTION|7|GET /gone|p"})

        # Act
        report = await _reconciler(helper_config, rag_client, state_repository, gateway).do_verify_and_repair()

        # Assert
        assert report.orphaned == 1
        assert "orphan-0" not in rag_client.records and "orphan-1" not in rag_client.records
        assert len(rag_client.records) == 1

    async def test_reindex_after_reset_should_restore_points(self, helper_config, gateway, rag_client, state_repository, page_job) -> None:
        # Arrange
        job = page_job()
        await gateway.upsert(job, ["a", "b"], "text")
        rag_client.records.clear()
        await _reconciler(helper_config, rag_client, state_repository, gateway).do_verify_and_repair()

        # Act
        await gateway.upsert(job, ["a", "b"], "text")

        # Assert
        assert len(rag_client.records) == 2

    async def test_sweep_should_reset_points_left_by_failed_state_save(
        self, helper_config, gateway, rag_client, state_repository, page_job, monkeypatch
    ) -> None:
        # Arrange
        job = page_job()
        await gateway.upsert(job, ["A0", "A1", "A2"], "text A")
        monkeypatch.setattr(
            state_repository, "save", AsyncMock(side_effect=OperationalError("UPDATE indexing_state", {}, Exception("disk I/O error")))
        )
        with pytest.raises(StateSaveError):
            await gateway.upsert(job, ["B0", "B1", "B2"], "text B")
        monkeypatch.undo()

        # Act
        report = await _reconciler(helper_config, rag_client, state_repository, gateway).do_verify_and_repair()
        await gateway.upsert(job, ["A0", "A1", "A2"], "text A")

        # Assert
        assert report.mismatched == 1
        assert sorted(record.text for record in rag_client.records.values()) == ["A0", "A1", "A2"]
        states = await state_repository.find_all()
        assert len(states) == 1 and states[0].chunk_count == 3

    async def test_sweep_should_accept_points_without_content_hash(self, helper_config, gateway, rag_client, state_repository, page_job) -> None:
        # Arrange
        await gateway.upsert(page_job(), ["a", "b"], "text")
        for record in rag_client.records.values():
            record.metadata.pop("contentHash")

        # Act
        report = await _reconciler(helper_config, rag_client, state_repository, gateway).do_verify_and_repair()

        # Assert
        assert report.mismatched == 0
        assert len(rag_client.records) == 2
