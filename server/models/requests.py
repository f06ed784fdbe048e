from datetime import datetime

from pydantic import BaseModel, Field

from shared.models.indexing import IndexQueryOptions, IndexSourceType


class ConnectedRequest(BaseModel):
    team_id: int


class QueryRequest(BaseModel):
    query: str
    top_k: int | None = Field(default=None, ge=1, le=100)
    source_type: IndexSourceType | None = None
    team_id: int | None = None
    api_path: str | None = None
    database_id: str | None = None
    page_id: str | None = None
    last_edited_after: datetime | None = None

    def to_options(self) -> IndexQueryOptions:
        return IndexQueryOptions(**self.model_dump())
