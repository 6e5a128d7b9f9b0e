"""Service A - greets callers that present the shared authentication key."""
import sys

from fastapi import Depends

from common.app import create_service_app
from common.auth import StaticKeyVerifier, require_auth_key
from common.config import SERVICE_A, Settings, load_settings
from common.context import RequestContext
from common.encoding import json_response
from common.errors import ConfigurationError, ListenerBindFailure
from common.lifecycle import DEFAULT_TIMEOUTS, ServerTimeouts, run_service
from common.logging import configure_logging, get_logger
from common.models import GreetingResponse, utc_now
from common.tracing import configure_tracing

GREETING = "Hello from Service A!"


def create_app(settings: Settings, timeouts: ServerTimeouts = DEFAULT_TIMEOUTS):
    app = create_service_app(settings, title="service-a", timeouts=timeouts)
    authenticate = require_auth_key(StaticKeyVerifier(settings.auth_key), settings.service_name)

    @app.get("/greet")
    async def greet(context: RequestContext = Depends(authenticate)):
        logger = get_logger(settings.service_name, context)
        logger.info("Processing greeting request", extra=context.log_fields())

        greeting = GreetingResponse(message=GREETING, request_id=context.request_id, timestamp=utc_now())
        response = json_response(context, greeting, logger)

        if response.status_code == 200:
            logger.info(
                "Greeting request processed successfully",
                extra={
                    "client_ip": context.client_ip,
                    "processing_time": context.elapsed(),
                    "response_message": greeting.message,
                },
            )
        return response

    return app


def main():
    configure_logging()
    logger = get_logger(SERVICE_A.name)
    try:
        settings = load_settings(SERVICE_A)
        configure_logging(settings.log_level)
        app = create_app(settings)
        configure_tracing(app, "service-a")
    except ConfigurationError as exc:
        logger.error("Invalid configuration", extra={"error": str(exc)})
        sys.exit(1)

    try:
        run_service(app, settings)
    except ListenerBindFailure as exc:
        logger.error("Server start error", extra={"error": str(exc), "port": settings.port})
        sys.exit(1)
    logger.info("Service A shutdown complete")


if __name__ == "__main__":
    main()
