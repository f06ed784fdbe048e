"""
Tests for DocumentFactory: source keys, prefixes, chunk ids and record metadata.
"""

import hashlib

from services.indexing.DocumentFactory import DocumentFactory
from shared.models.indexing import IndexJob, IndexSourceType, notion_primary_database_api_path


class TestIdentity:
    def test_build_source_key_should_append_resource_id(self, factory, page_job) -> None:
        job = page_job("page-1")

        assert factory.build_source_key(job) == "NOTION|7|GET /api/v1/teams/7/notion/pages/page-1|page-1"

    def test_build_source_key_should_omit_blank_resource_id(self, factory) -> None:
        job = IndexJob(
            source_type=IndexSourceType.NOTION,
            team_id=7,
            api_path=notion_primary_database_api_path(7),
            resource_id="   ",
        )

        assert job.resource_id is None
        assert factory.build_source_key(job) == "NOTION|7|GET /api/v1/teams/7/notion/databases/primary"

    def test_document_prefix_should_be_first_32_hex_chars_of_sha256(self, factory) -> None:
        key = "NOTION|7|GET /x|p"

        prefix = factory.document_prefix(key)

        assert prefix == hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        assert len(prefix) == 32

    def test_chunk_ids_should_cover_half_open_range(self) -> None:
        assert DocumentFactory.chunk_ids("abc", 1, 4) == ["abc-1", "abc-2", "abc-3"]
        assert DocumentFactory.chunk_ids("abc", 2, 2) == []

    def test_escape_should_escape_quotes_and_backslashes(self) -> None:
        assert DocumentFactory.escape("it's C:\\tmp") == "it\\'s C:\\\\tmp"

    def test_infer_depth_should_count_two_spaces_per_level(self) -> None:
        assert DocumentFactory.infer_depth("root\n    grandchild\n  child") == 2
        assert DocumentFactory.infer_depth("   ") == 0


class TestToVectorRecords:
    def test_page_records_should_carry_page_metadata(self, factory, page_job) -> None:
        # Arrange
        job = page_job("page-1", payload={
            "id": "page-1",
            "title": "Launch plan",
            "status": "In progress",
            "date": {"start": "2024-05-01", "end": None},
            "url": "https://notion.so/page-1",
        })
        key = factory.build_source_key(job)
        prefix = factory.document_prefix(key)

        # Act
        records = factory.to_vector_records(job, key, prefix, ["first", "second"], "abc123")

        # Assert
        assert [r.id for r in records] == [f"{prefix}-0", f"{prefix}-1"]
        meta = records[1].metadata
        assert meta["sourceType"] == "NOTION"
        assert meta["teamId"] == 7
        assert meta["sourceKey"] == key
        assert meta["contentHash"] == "abc123"
        assert meta["pageId"] == "page-1"
        assert meta["title"] == "Launch plan"
        assert meta["status"] == "In progress"
        assert meta["startDate"] == "2024-05-01"
        assert meta["endDate"] == ""
        assert meta["pageUrl"] == "https://notion.so/page-1"
        assert meta["chunkIndex"] == 1
        assert meta["chunkCount"] == 2
        assert "databaseTitle" not in meta

    def test_primary_database_records_should_carry_listing_metadata(self, factory) -> None:
        job = IndexJob(
            source_type=IndexSourceType.NOTION,
            team_id=3,
            api_path=notion_primary_database_api_path(3),
            payload={"databaseTitle": "Roadmap", "pages": [{"id": "a"}, {"id": "b"}]},
        )
        key = factory.build_source_key(job)

        records = factory.to_vector_records(job, key, factory.document_prefix(key), ["only"])

        meta = records[0].metadata
        assert meta["databaseTitle"] == "Roadmap"
        assert meta["pageCount"] == 2
        assert meta["title"] == "Roadmap"
        assert meta["pageId"] == ""

    def test_raw_database_payload_should_yield_database_id(self, factory) -> None:
        job = IndexJob(
            source_type=IndexSourceType.NOTION,
            team_id=3,
            api_path="GET /api/v1/teams/3/notion/databases/db-9",
            payload={
                "object": "database",
                "id": "db-9",
                "title": [{"plain_text": "Tasks"}],
                "last_edited_time": "2024-06-01T10:00:00.000Z",
            },
        )

        records = factory.to_vector_records(job, "k", "p", ["x"])

        meta = records[0].metadata
        assert meta["databaseId"] == "db-9"
        assert meta["title"] == "Tasks"
        assert meta["lastEditedTime"] == "2024-06-01T10:00:00.000Z"
        assert meta["pageId"] == ""
