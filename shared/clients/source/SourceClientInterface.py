from abc import ABC, abstractmethod
from typing import Any


class SourceClientInterface(ABC):
    """Read access to the external workspace the index mirrors.

    Authentication, token refresh and the actual HTTP calls belong to the
    implementation. Responses are returned as JSON-like trees shaped like the
    workspace API DTOs (primary database listing, page detail).
    """

    async def boot(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def do_fetch_primary_database(self, team_id: int) -> dict[str, Any]:
        """
        Fetch the team's primary database with its page summaries.

        Returns:
            dict: {"databaseTitle": str, "pages": [{"id", "url", "title", "date", "status"}, ...]}
        """
        pass

    @abstractmethod
    async def do_fetch_page_detail(self, team_id: int, page_id: str) -> dict[str, Any]:
        """
        Fetch one page with its content and child databases.

        Returns:
            dict: {"id", "url", "title", "date", "status", "pageContent", "childDatabases": [...]}
        """
        pass

    @abstractmethod
    async def do_resolve_team_ids(self, workspace_id: str) -> list[int]:
        """
        Resolve the teams connected to a workspace.

        Returns:
            list[int]: Team ids, empty if the workspace is not connected.
        """
        pass
