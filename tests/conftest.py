"""
Shared fixtures: config helper, in-memory state store, fake vector store.

Dependencies: pytest, pytest-asyncio, sqlalchemy, aiosqlite
"""

import logging

import pytest

from services.indexing.DocumentFactory import DocumentFactory
from services.indexing.VectorStoreGateway import VectorStoreGateway
from shared.db.IndexingStateRepository import IndexingStateRepository
from shared.db.StateStore import StateStore
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.indexing import IndexJob, IndexSourceType, notion_page_api_path
from tests.fakes import FakeRAGClient


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("workspace_index.tests")))


@pytest.fixture
async def state_store(helper_config: HelperConfig):
    """In-memory SQLite state store with tables created."""
    store = StateStore(helper_config, "sqlite+aiosqlite:///:memory:")
    await store.create_tables()
    yield store
    await store.close()


@pytest.fixture
def state_repository(state_store: StateStore) -> IndexingStateRepository:
    return IndexingStateRepository(state_store)


@pytest.fixture
def rag_client() -> FakeRAGClient:
    return FakeRAGClient()


@pytest.fixture
def gateway(helper_config, rag_client, state_repository) -> VectorStoreGateway:
    return VectorStoreGateway(helper_config, rag_client, state_repository)


@pytest.fixture
def factory() -> DocumentFactory:
    return DocumentFactory()


@pytest.fixture
def page_job():
    """Build a page job for team 7; payload and page id can be overridden."""

    def build(page_id: str = "page-1", payload: dict | None = None, team_id: int = 7) -> IndexJob:
        return IndexJob(
            source_type=IndexSourceType.NOTION,
            team_id=team_id,
            api_path=notion_page_api_path(team_id, page_id),
            resource_id=page_id,
            payload=payload if payload is not None else {"id": page_id, "title": "Launch plan"},
        )

    return build
