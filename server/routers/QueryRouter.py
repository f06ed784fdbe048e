from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import QueryRequest
from server.models.responses import QueryResponse, QueryResultItem

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_index(
    request: Request,
    body: QueryRequest,
    _: None = Depends(verify_api_key),
) -> QueryResponse:
    """Similarity search over the indexed workspace content.

    Args:
        request (Request): FastAPI request (provides app.state.gateway).
        body (QueryRequest): Query text, top_k and optional metadata filters.
        _ (None): Auth dependency result (unused).

    Returns:
        QueryResponse: Matching chunks, best first.
    """
    gateway = request.app.state.gateway
    matches = await gateway.query(body.to_options())
    results = [
        QueryResultItem(id=match.id, text=match.text, score=match.score, metadata=match.metadata)
        for match in matches
    ]
    return QueryResponse(query=body.query, results=results, total=len(results))
