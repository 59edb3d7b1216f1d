"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from shop_webhooks.webhooks.service import WebhookService


async def get_webhook_service(request: Request) -> WebhookService:
    """Service built by the application lifespan.

    Raises:
        HTTPException: If the application has not finished starting
    """
    service = getattr(request.app.state, "webhook_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook service not initialized",
        )
    return service
