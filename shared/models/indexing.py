"""Pipeline-wide models: source types, index jobs and query options."""

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class IndexSourceType(str, enum.Enum):
    """Kind of external source a document was read from."""

    NOTION = "NOTION"


def notion_page_api_path(team_id: int, page_id: str) -> str:
    return f"GET /api/v1/teams/{team_id}/notion/pages/{page_id}"


def notion_primary_database_api_path(team_id: int) -> str:
    return f"GET /api/v1/teams/{team_id}/notion/databases/primary"


class IndexJob(BaseModel):
    """One unit of indexing work.

    Attributes:
        source_type: Which normalizer handles the payload.
        team_id: Tenant the content belongs to.
        api_path: Logical read endpoint that produced the payload.
        resource_id: Stable id of the resource, None for collection reads.
        payload: The source response as a JSON-like tree.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source_type: IndexSourceType
    team_id: int
    api_path: str
    resource_id: str | None = None
    payload: Any = None

    @field_validator("resource_id", mode="before")
    @classmethod
    def _blank_resource_id_is_absent(cls, value: Any) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("api_path")
    @classmethod
    def _api_path_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("api_path must not be blank")
        return value


class IndexQueryOptions(BaseModel):
    """Similarity query with optional metadata restrictions."""

    query: str | None = None
    top_k: int | None = None
    source_type: IndexSourceType | None = None
    team_id: int | None = None
    api_path: str | None = None
    database_id: str | None = None
    page_id: str | None = None
    last_edited_after: datetime | None = None
