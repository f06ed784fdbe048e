from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.clients.source.SourceClientInterface import SourceClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class SourceClientWorkspace(ClientInterface, SourceClientInterface):
    """Reads Notion content through the workspace backend's own REST API.

    The backend holds the Notion OAuth tokens per team and serves the
    flattened DTOs the normalizer understands.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config)
        self.base_url = self.get_config_val("BASE_URL", val_type="string")
        self.api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_client_type(self) -> str:
        return "source"

    def _get_engine_name(self) -> str:
        return "workspace"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    def _get_auth_header(self) -> dict:
        return {"X-Api-Key": self.api_key} if self.api_key else {}

    def _get_base_url(self) -> str:
        return self.base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/actuator/health"

    def _get_endpoint_primary_database(self, team_id: int) -> str:
        return f"/api/v1/teams/{team_id}/notion/databases/primary"

    def _get_endpoint_page_detail(self, team_id: int, page_id: str) -> str:
        return f"/api/v1/teams/{team_id}/notion/pages/{page_id}"

    def _get_endpoint_workspace_teams(self, workspace_id: str) -> str:
        return f"/api/v1/notion/workspaces/{workspace_id}/teams"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_primary_database(self, team_id: int) -> dict[str, Any]:
        response = await self.do_request(
            method="GET", endpoint=self._get_endpoint_primary_database(team_id), raise_on_error=True
        )
        return self._unwrap(response.json())

    async def do_fetch_page_detail(self, team_id: int, page_id: str) -> dict[str, Any]:
        response = await self.do_request(
            method="GET", endpoint=self._get_endpoint_page_detail(team_id, page_id), raise_on_error=True
        )
        return self._unwrap(response.json())

    async def do_resolve_team_ids(self, workspace_id: str) -> list[int]:
        """
        Resolve the teams connected to a Notion workspace.

        Accepts a plain list of ids or a list of objects carrying "teamId" or "id".
        An unknown workspace (404) resolves to no team.
        """
        response = await self.do_request(method="GET", endpoint=self._get_endpoint_workspace_teams(workspace_id))
        if response.status_code == 404:
            return []
        if not response.is_success:
            raise Exception(f"Team lookup for workspace {workspace_id} failed with status {response.status_code}")

        team_ids: list[int] = []
        for item in self._unwrap(response.json()) or []:
            raw = item.get("teamId", item.get("id")) if isinstance(item, dict) else item
            try:
                team_ids.append(int(raw))
            except (TypeError, ValueError):
                self.logging.warning("Ignoring unparsable team id '%s' for workspace %s", raw, workspace_id)
        return team_ids

    @staticmethod
    def _unwrap(body: Any) -> Any:
        # the backend wraps responses as {"data": ...}
        if isinstance(body, dict) and "data" in body and len(body) <= 2:
            return body["data"]
        return body
