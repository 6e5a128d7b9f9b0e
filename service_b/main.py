"""Service B - calls Service A and merges its greeting with a local one.

Upstream failures are not retried; they surface as plain-text responses
whose status comes from the failing stage of the call.
"""
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Request

from common.app import create_service_app
from common.client import UpstreamClient
from common.config import SERVICE_B, Settings, load_settings
from common.context import RequestContext, get_request_context
from common.encoding import json_response
from common.errors import ConfigurationError, ListenerBindFailure
from common.lifecycle import DEFAULT_TIMEOUTS, ServerTimeouts, run_service
from common.logging import configure_logging, get_logger
from common.models import CombinedResponse, UpstreamGreeting, utc_now
from common.tracing import configure_tracing

LOCAL_MESSAGE = "Hello from Service B!"
GREET_PATH = "/greet"


def get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


async def combine_greetings(context: RequestContext, upstream: UpstreamClient, logger) -> CombinedResponse:
    greeting = await upstream.get_json(context, GREET_PATH, UpstreamGreeting)
    combined = CombinedResponse(
        service_a_message=greeting.message,
        service_b_message=LOCAL_MESSAGE,
        request_id=context.request_id,
        timestamp=utc_now(),
    )
    logger.info(
        "Preparing response",
        extra={
            "service_a_message": combined.service_a_message,
            "service_b_message": combined.service_b_message,
            "service_a_request_id": greeting.request_id,
        },
    )
    return combined


def create_app(settings: Settings, transport: httpx.AsyncBaseTransport | None = None,
               timeouts: ServerTimeouts = DEFAULT_TIMEOUTS) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        upstream = UpstreamClient(settings.upstream_url, settings.auth_key, settings.service_name,
                                  transport=transport)
        app.state.upstream = upstream
        try:
            yield
        finally:
            await upstream.aclose()

    app = create_service_app(settings, title="service-b", lifespan=lifespan, timeouts=timeouts)

    @app.get("/process")
    async def process(context: RequestContext = Depends(get_request_context),
                      upstream: UpstreamClient = Depends(get_upstream)):
        logger = get_logger(settings.service_name, context)
        logger.info("Processing service interaction request", extra=context.log_fields())

        combined = await combine_greetings(context, upstream, logger)
        response = json_response(context, combined, logger)

        if response.status_code == 200:
            logger.info(
                "Process request completed successfully",
                extra={"client_ip": context.client_ip, "processing_time": context.elapsed()},
            )
        return response

    return app


def main():
    configure_logging()
    logger = get_logger(SERVICE_B.name)
    try:
        settings = load_settings(SERVICE_B)
        configure_logging(settings.log_level)
        app = create_app(settings)
        configure_tracing(app, "service-b")
    except ConfigurationError as exc:
        logger.error("Invalid configuration", extra={"error": str(exc)})
        sys.exit(1)

    try:
        run_service(app, settings)
    except ListenerBindFailure as exc:
        logger.error("Server start error", extra={"error": str(exc), "port": settings.port})
        sys.exit(1)
    logger.info("Service B shutdown complete")


if __name__ == "__main__":
    main()
