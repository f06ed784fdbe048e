"""Verify-and-repair sweep between the state store and the vector index.

Index mutation and state save are not atomic, so a crash or a failed state
write can leave the two disagreeing. The sweep finds such source keys and
resets them; the next trigger for the resource then re-indexes it from
scratch.
"""

import asyncio
from typing import Callable

from pydantic import BaseModel

from shared.clients.rag.FilterExpression import FilterClause
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.db.IndexingStateRepository import IndexingStateRepository
from shared.helper.HelperConfig import HelperConfig

SOURCE_KEY_FIELD = "sourceKey"
CONTENT_HASH_FIELD = "contentHash"


class ReconcileReport(BaseModel):
    checked: int = 0
    mismatched: int = 0
    orphaned: int = 0
    failed: int = 0


class IndexReconciler:
    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        state_repository: IndexingStateRepository,
        lock_for: Callable[[str], asyncio.Lock] | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._states = state_repository
        # shares the gateway locks so a sweep never races an upsert of the same key
        self._lock_for = lock_for or (lambda _key: asyncio.Lock())

    def _source_key_filter(self, source_key: str) -> list[dict]:
        return self._rag_client.build_filter_conditions(
            [FilterClause(field=SOURCE_KEY_FIELD, operator="==", value=source_key)]
        )

    ##########################################
    ################# SWEEP ##################
    ##########################################

    async def do_verify_and_repair(self) -> ReconcileReport:
        """Compare every state row with the index and repair disagreements.

        * state row whose chunk_count differs from the number of points under
          its source key, or whose points carry another content hash: the
          points and the row are deleted,
        * points whose source key has no state row (orphans): the points are deleted.

        Returns:
            ReconcileReport: Counts of what was checked and repaired.
        """
        report = ReconcileReport()
        self.logging.info("RECONCILE: starting verify-and-repair sweep...")

        states = await self._states.find_all()
        known_keys = set()
        for state in states:
            known_keys.add(state.source_key)
            report.checked += 1
            try:
                async with self._lock_for(state.source_key):
                    if not await self._repair_if_mismatched(state.source_key):
                        continue
                report.mismatched += 1
            except Exception as e:
                report.failed += 1
                self.logging.error("RECONCILE: check failed for sourceKey=%s: %s", state.source_key, e)

        try:
            scroll = await self._rag_client.do_scroll_all(filters=[], with_payload=[SOURCE_KEY_FIELD], with_vector=False)
        except Exception as e:
            self.logging.error("RECONCILE: scroll failed: %s. Skipping orphan cleanup.", e)
            report.failed += 1
            return report

        indexed_keys = {
            self._rag_client.extract_record_payload(point).get(SOURCE_KEY_FIELD)
            for point in scroll.points
        }
        indexed_keys.discard(None)
        for orphan_key in sorted(indexed_keys - known_keys):
            try:
                async with self._lock_for(orphan_key):
                    # points may belong to an upsert that has not saved its state yet
                    if await self._states.find_by_source_key(orphan_key) is not None:
                        continue
                    await self._rag_client.do_delete_points_by_filter(self._source_key_filter(orphan_key))
                report.orphaned += 1
                self.logging.info("RECONCILE: removed orphaned points of sourceKey=%s", orphan_key)
            except Exception as e:
                report.failed += 1
                self.logging.error("RECONCILE: orphan delete failed for sourceKey=%s: %s", orphan_key, e)

        self.logging.info(
            "RECONCILE: done, %d checked, %d mismatched, %d orphaned, %d failed.",
            report.checked, report.mismatched, report.orphaned, report.failed,
            color="green" if not report.failed else "yellow",
        )
        return report

    async def run_forever(self, interval_seconds: int) -> None:
        """Repeat the sweep every interval_seconds until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.do_verify_and_repair()
            except Exception as e:
                self.logging.error("RECONCILE: sweep aborted: %s", e, exc_info=True)

    async def _repair_if_mismatched(self, source_key: str) -> bool:
        """Reset a source key whose points disagree with its state row. Caller holds the key lock.

        A disagreement is either a point count different from chunk_count, or a
        point carrying a content hash other than the recorded one. The latter is
        what a failed state save after a successful add leaves behind.
        """
        state = await self._states.find_by_source_key(source_key)
        if state is None:
            return False
        filters = self._source_key_filter(source_key)
        stored = await self._rag_client.do_count(filters)
        if stored != state.chunk_count:
            self.logging.warning(
                "RECONCILE: sourceKey=%s has %d points but state says %d, resetting",
                source_key, stored, state.chunk_count,
            )
        else:
            scroll = await self._rag_client.do_scroll_all(filters=filters, with_payload=[CONTENT_HASH_FIELD], with_vector=False)
            foreign_hashes = {
                self._rag_client.extract_record_payload(point).get(CONTENT_HASH_FIELD)
                for point in scroll.points
            } - {None, "", state.content_hash}
            if not foreign_hashes:
                return False
            self.logging.warning(
                "RECONCILE: sourceKey=%s holds points of content %s but state says %s, resetting",
                source_key, ", ".join(sorted(foreign_hashes)), state.content_hash,
            )
        await self._rag_client.do_delete_points_by_filter(filters)
        await self._states.delete(state)
        return True
