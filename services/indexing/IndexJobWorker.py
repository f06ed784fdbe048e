import asyncio

from services.indexing.Chunker import Chunker
from services.indexing.IndexingErrors import NormalizerNotFoundError
from services.indexing.VectorStoreGateway import VectorStoreGateway
from services.indexing.normalizer.NormalizerManager import NormalizerManager
from shared.helper.HelperConfig import HelperConfig
from shared.models.indexing import IndexJob


class IndexJobWorker:
    """Runs one job through normalize → chunk → upsert.

    This is the job boundary: every failure is logged with the job context
    and the job is dropped. Nothing is retried. Normalizing and chunking are
    CPU-bound and run in a worker thread so the event loop keeps serving
    requests meanwhile.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        normalizers: NormalizerManager,
        chunker: Chunker,
        gateway: VectorStoreGateway,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._normalizers = normalizers
        self._chunker = chunker
        self._gateway = gateway

    async def handle(self, job: IndexJob) -> None:
        try:
            normalizer = self._normalizers.get(job.source_type)
            if normalizer is None:
                raise NormalizerNotFoundError(f"no normalizer registered for sourceType={job.source_type.value}")

            normalized_text = await asyncio.to_thread(normalizer.normalize, job)
            if not normalized_text or not normalized_text.strip():
                self.logging.debug(
                    "VECTORIZE: nothing to index sourceType=%s apiPath=%s resourceId=%s",
                    job.source_type.value, job.api_path, job.resource_id,
                )
                return

            chunks = await asyncio.to_thread(self._chunker.chunk, normalized_text)
            if not chunks:
                return

            await self._gateway.upsert(job, chunks, normalized_text)
        except Exception as e:
            self.logging.error(
                "VECTORIZE: failed to process sourceType=%s teamId=%s apiPath=%s resourceId=%s: %s",
                job.source_type.value, job.team_id, job.api_path, job.resource_id, e,
                exc_info=True,
            )
