"""Wires the indexing pipeline from environment configuration.

Shared by the API server lifespan and the command line runner so both build
the exact same object graph.
"""

from services.indexing.Chunker import Chunker
from services.indexing.IndexJobDispatcher import IndexJobDispatcher
from services.indexing.IndexJobWorker import IndexJobWorker
from services.indexing.IndexReconciler import IndexReconciler
from services.indexing.VectorStoreGateway import VectorStoreGateway
from services.indexing.normalizer.NormalizerManager import NormalizerManager
from services.triggers.InitialIndexingService import InitialIndexingService
from services.triggers.WebhookIndexingService import WebhookIndexingService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.source.SourceClientManager import SourceClientManager
from shared.db.IndexingStateRepository import IndexingStateRepository
from shared.db.StateStore import StateStore
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import IndexingSettings


class IndexingRuntime:
    def __init__(self, helper_config: HelperConfig) -> None:
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.settings = IndexingSettings.from_helper_config(helper_config)

        self.embed_client = EmbedClientManager(helper_config=helper_config).get_client()
        self.rag_client = RAGClientManager(helper_config=helper_config, embed_client=self.embed_client).get_client()
        self.source_client = SourceClientManager(helper_config=helper_config).get_client()

        self.state_store = StateStore(helper_config, self.settings.state_database_url)
        self.state_repository = IndexingStateRepository(self.state_store)
        self.gateway = VectorStoreGateway(helper_config, self.rag_client, self.state_repository)
        self.normalizers = NormalizerManager(helper_config, self.settings.max_normalized_chars)
        self.chunker = Chunker(self.settings.chunk_size, self.settings.chunk_overlap)
        self.worker = IndexJobWorker(helper_config, self.normalizers, self.chunker, self.gateway)
        self.dispatcher = IndexJobDispatcher(helper_config, self.settings, self.worker)
        self.reconciler = IndexReconciler(helper_config, self.rag_client, self.state_repository, self.gateway.lock_for)

        self.webhook_service = WebhookIndexingService(helper_config, self.dispatcher, self.gateway, self.source_client)
        self.initial_service = (
            InitialIndexingService(helper_config, self.dispatcher, self.source_client)
            if self.source_client is not None else None
        )

    def _clients(self) -> list:
        return [client for client in (self.embed_client, self.rag_client, self.source_client) if client is not None]

    async def boot(self) -> None:
        """Boot every client, create the state tables and make sure the collection exists.

        Raises:
            Exception: If the vector store or the embedding model is not reachable.
        """
        self.logging.info("Booting all clients...")
        for client in self._clients():
            await client.boot()

        result = await self.embed_client.do_healthcheck()
        if not result.is_success:
            raise Exception(f"Embed client is not reachable (status {result.status_code}). Indexing will not work.")
        result = await self.rag_client.do_healthcheck()
        if not result.is_success:
            raise Exception(f"RAG client '{self.rag_client.__class__.__name__}' is not reachable (status {result.status_code}).")

        await self.state_store.create_tables()
        await self.rag_client.do_ensure_collection()
        await self.dispatcher.start()
        self.logging.info("All clients booted successfully.")

    async def close(self) -> None:
        await self.dispatcher.stop()
        for client in self._clients():
            await client.close()
        await self.state_store.close()
        self.logging.info("All clients closed.")
