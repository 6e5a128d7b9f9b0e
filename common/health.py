from fastapi import APIRouter, Depends

from common.config import Settings
from common.context import RequestContext, get_request_context
from common.encoding import json_response
from common.logging import get_logger
from common.models import HealthStatus, utc_now


def health_router(settings: Settings) -> APIRouter:
    """Liveness endpoint; never authenticates and never calls another service."""
    router = APIRouter()

    @router.get("/health")
    async def health(context: RequestContext = Depends(get_request_context)):
        logger = get_logger(settings.service_name, context)
        logger.info("Health check received", extra=context.log_fields())

        status = HealthStatus(
            status="healthy",
            timestamp=utc_now().strftime("%Y-%m-%dT%H:%M:%SZ"),
            request_id=context.request_id,
            server_port=settings.port,
        )
        response = json_response(context, status, logger)

        logger.info("Health check completed", extra={"processing_time": context.elapsed()})
        return response

    return router
