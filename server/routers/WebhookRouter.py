from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import ConnectedRequest
from server.models.responses import WebhookResponse

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/notion")
async def webhook_notion(request: Request) -> WebhookResponse:
    """Accept a Notion webhook delivery.

    The body is read raw so malformed deliveries are acknowledged and ignored
    instead of being answered with 422, which would make Notion retry them.

    Returns:
        WebhookResponse: The challenge for a verification request, "accepted" otherwise.
    """
    webhook_service = request.app.state.webhook_service
    challenge = webhook_service.handle(await request.body())
    if challenge is not None:
        return WebhookResponse(status="verification", challenge=challenge)
    return WebhookResponse(status="accepted")


@router.post("/connected")
async def webhook_connected(
    request: Request,
    body: ConnectedRequest,
    _: None = Depends(verify_api_key),
) -> dict:
    """Start the bulk load of a freshly connected team.

    Args:
        request (Request): FastAPI request (provides app.state.initial_service).
        body (ConnectedRequest): JSON body containing the team_id.
        _ (None): Auth dependency result (unused).

    Returns:
        dict: Acknowledgement payload with status and team_id.

    Raises:
        HTTPException: 503 if no source client is configured.
    """
    initial_service = request.app.state.initial_service
    if initial_service is None:
        raise HTTPException(status_code=503, detail="No source client configured")
    request.app.state.dispatcher.submit(
        f"initial load teamId={body.team_id}", initial_service.do_initial_indexing, body.team_id
    )
    return {"status": "accepted", "team_id": body.team_id}
