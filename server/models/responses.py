from typing import Any

from pydantic import BaseModel


class QueryResultItem(BaseModel):
    id: str
    text: str
    score: float
    metadata: dict[str, Any]


class QueryResponse(BaseModel):
    query: str
    results: list[QueryResultItem]
    total: int


class WebhookResponse(BaseModel):
    status: str
    challenge: str | None = None
