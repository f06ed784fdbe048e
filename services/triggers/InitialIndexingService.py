from services.indexing.IndexJobDispatcher import IndexJobDispatcher
from shared.clients.source.SourceClientInterface import SourceClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.indexing import (
    IndexJob,
    IndexSourceType,
    notion_page_api_path,
    notion_primary_database_api_path,
)


class InitialIndexingService:
    """Bulk load after a workspace gets connected: the primary database, then every listed page."""

    def __init__(self, helper_config: HelperConfig, dispatcher: IndexJobDispatcher, source_client: SourceClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._dispatcher = dispatcher
        self._source_client = source_client

    async def do_initial_indexing(self, team_id: int) -> int:
        """Publish index jobs for the whole workspace of a team.

        Args:
            team_id (int): The freshly connected team.

        Returns:
            int: Number of published page jobs.
        """
        self.logging.info("INITIAL_INDEX: bulk load started teamId=%s", team_id)
        try:
            database = await self._source_client.do_fetch_primary_database(team_id)
        except Exception as e:
            self.logging.error("INITIAL_INDEX: primary database fetch failed teamId=%s: %s", team_id, e)
            return 0

        self._dispatcher.publish(IndexJob(
            source_type=IndexSourceType.NOTION,
            team_id=team_id,
            api_path=notion_primary_database_api_path(team_id),
            payload=database,
        ))

        pages = (database or {}).get("pages") or []
        if not pages:
            self.logging.info("INITIAL_INDEX: no pages, done teamId=%s", team_id)
            return 0

        published = 0
        for page in pages:
            page_id = str((page or {}).get("id") or "").strip()
            if not page_id:
                continue
            try:
                detail = await self._source_client.do_fetch_page_detail(team_id, page_id)
            except Exception as e:
                self.logging.warning("INITIAL_INDEX: page fetch failed teamId=%s pageId=%s: %s", team_id, page_id, e)
                continue
            self._dispatcher.publish(IndexJob(
                source_type=IndexSourceType.NOTION,
                team_id=team_id,
                api_path=notion_page_api_path(team_id, page_id),
                resource_id=page_id,
                payload=detail,
            ))
            published += 1

        self.logging.info("INITIAL_INDEX: bulk load queued teamId=%s pageCount=%d", team_id, published)
        return published
