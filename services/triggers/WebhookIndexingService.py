"""Keeps the index in sync with Notion webhook events.

* subscription verification ({"verification_token": ...}): the token is
  handed back as challenge,
* page change events: the page and the team's primary database are re-indexed,
* page.deleted: the page's chunks are removed, then the primary database is re-indexed,
* database events: the primary database is re-indexed.

Event handling returns immediately; the actual work runs on the index
dispatcher's pool.
"""

import json
from typing import Any

from services.indexing.IndexJobDispatcher import IndexJobDispatcher
from services.indexing.VectorStoreGateway import VectorStoreGateway
from shared.clients.source.SourceClientInterface import SourceClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.indexing import (
    IndexJob,
    IndexSourceType,
    notion_page_api_path,
    notion_primary_database_api_path,
)

PAGE_REINDEX_EVENTS = frozenset({
    "page.created",
    "page.content_updated",
    "page.properties_updated",
    "page.moved",
    "page.undeleted",
})
PAGE_DELETE_EVENTS = frozenset({"page.deleted"})
DATABASE_EVENT_PREFIXES = ("database.", "data_source.")


class WebhookIndexingService:
    def __init__(
        self,
        helper_config: HelperConfig,
        dispatcher: IndexJobDispatcher,
        gateway: VectorStoreGateway,
        source_client: SourceClientInterface | None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._dispatcher = dispatcher
        self._gateway = gateway
        self._source_client = source_client

    ##########################################
    ################ WEBHOOK #################
    ##########################################

    def handle(self, raw_body: str | bytes) -> str | None:
        """Route one webhook request.

        Args:
            raw_body (str | bytes): The unparsed request body.

        Returns:
            str | None: The challenge for a verification request, None otherwise.
        """
        try:
            payload = json.loads(raw_body)
        except (ValueError, TypeError) as e:
            self.logging.warning("WEBHOOK_INDEX: unparsable webhook body ignored: %s", e)
            return None
        if not isinstance(payload, dict):
            self.logging.warning("WEBHOOK_INDEX: webhook body is not an object, ignored.")
            return None

        if "verification_token" in payload:
            token = str(payload.get("verification_token") or "")
            self.logging.info("WEBHOOK_INDEX: verification_token received")
            return token

        self.process_event(payload)
        return None

    def process_event(self, payload: dict[str, Any]) -> None:
        event_type = str(payload.get("type") or "unknown")
        workspace_id = payload.get("workspace_id")
        entity = payload.get("entity") if isinstance(payload.get("entity"), dict) else {}
        entity_id = str(entity.get("id") or "").strip()
        self.logging.info(
            "WEBHOOK_INDEX: event received type=%s workspaceId=%s entityId=%s", event_type, workspace_id, entity_id
        )

        is_page_event = event_type in PAGE_REINDEX_EVENTS or event_type in PAGE_DELETE_EVENTS
        is_database_event = event_type.startswith(DATABASE_EVENT_PREFIXES)
        if not is_page_event and not is_database_event:
            self.logging.debug("WEBHOOK_INDEX: event type=%s ignored", event_type)
            return
        if is_page_event and not entity_id:
            self.logging.warning("WEBHOOK_INDEX: event type=%s without entity id ignored", event_type)
            return
        if self._source_client is None or not workspace_id:
            self.logging.warning("WEBHOOK_INDEX: cannot resolve team for workspaceId=%s, event ignored", workspace_id)
            return

        self._dispatcher.submit(
            f"webhook {event_type} workspaceId={workspace_id} entityId={entity_id}",
            self._dispatch_for_workspace, str(workspace_id), event_type, entity_id,
        )

    async def _dispatch_for_workspace(self, workspace_id: str, event_type: str, entity_id: str) -> None:
        team_ids = await self._source_client.do_resolve_team_ids(workspace_id)
        if not team_ids:
            self.logging.info("WEBHOOK_INDEX: no team connected to workspaceId=%s", workspace_id)
            return
        for team_id in team_ids:
            if event_type in PAGE_DELETE_EVENTS:
                await self.trigger_page_deletion(team_id, entity_id)
            elif event_type in PAGE_REINDEX_EVENTS:
                await self.trigger_page_indexing(team_id, entity_id)
            else:
                await self.trigger_database_indexing(team_id)

    ##########################################
    ################ TRIGGERS ################
    ##########################################

    async def trigger_page_indexing(self, team_id: int, page_id: str) -> None:
        """Re-index a page and the primary database. Each step fails independently."""
        self.logging.info("WEBHOOK_INDEX: re-indexing page teamId=%s pageId=%s", team_id, page_id)
        try:
            await self._index_page(team_id, page_id)
        except Exception as e:
            self.logging.error("WEBHOOK_INDEX: page indexing failed teamId=%s pageId=%s: %s", team_id, page_id, e)
        await self.trigger_database_indexing(team_id)

    async def trigger_page_deletion(self, team_id: int, page_id: str) -> None:
        """Remove a page's chunks, then re-index the primary database."""
        self.logging.info("WEBHOOK_INDEX: deleting page teamId=%s pageId=%s", team_id, page_id)
        try:
            removed = await self._gateway.delete_by_resource(team_id, page_id, IndexSourceType.NOTION)
            self.logging.info("WEBHOOK_INDEX: removed %d source key(s) of pageId=%s", removed, page_id)
        except Exception as e:
            self.logging.error("WEBHOOK_INDEX: page delete failed teamId=%s pageId=%s: %s", team_id, page_id, e)
        await self.trigger_database_indexing(team_id)

    async def trigger_database_indexing(self, team_id: int) -> None:
        try:
            await self._index_primary_database(team_id)
        except Exception as e:
            self.logging.error("WEBHOOK_INDEX: primary database re-indexing failed teamId=%s: %s", team_id, e)

    async def _index_page(self, team_id: int, page_id: str) -> None:
        payload = await self._source_client.do_fetch_page_detail(team_id, page_id)
        self._dispatcher.publish(IndexJob(
            source_type=IndexSourceType.NOTION,
            team_id=team_id,
            api_path=notion_page_api_path(team_id, page_id),
            resource_id=page_id,
            payload=payload,
        ))

    async def _index_primary_database(self, team_id: int) -> None:
        payload = await self._source_client.do_fetch_primary_database(team_id)
        self._dispatcher.publish(IndexJob(
            source_type=IndexSourceType.NOTION,
            team_id=team_id,
            api_path=notion_primary_database_api_path(team_id),
            resource_id=None,
            payload=payload,
        ))
