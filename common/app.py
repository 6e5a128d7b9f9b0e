import asyncio

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from common.config import Settings
from common.context import REQUEST_ID_HEADER, RequestContext
from common.errors import (
    HandlerTimeout,
    RequestReadTimeout,
    ServiceError,
    report_service_error,
    service_error_handler,
)
from common.health import health_router
from common.lifecycle import DEFAULT_TIMEOUTS, ServerTimeouts
from common.logging import get_logger


async def add_request_id(request: Request, call_next):
    """Middleware that mints the correlation id and stamps it on the response.

    The id is generated here and nowhere else, so headers, bodies and log
    records of one request always agree.
    """
    context = RequestContext.from_request(request)
    request.state.context = context
    try:
        response = await call_next(request)
    except Exception:
        logger = get_logger(request.app.state.service_name, context)
        logger.exception("Unhandled error", extra={**context.log_fields(), "status_code": 500})
        response = PlainTextResponse("Internal Server Error", status_code=500)
    response.headers[REQUEST_ID_HEADER] = context.request_id
    return response


class RequestDeadlineMiddleware:
    """Bounds how long one request may take.

    The body must arrive within `timeouts.read` seconds of the request
    starting, otherwise the handler sees RequestReadTimeout (408). The
    handler must start its response within `timeouts.write` seconds,
    otherwise it is cancelled and the client gets a 503.
    """

    def __init__(self, app, timeouts: ServerTimeouts = DEFAULT_TIMEOUTS):
        self.app = app
        self.timeouts = timeouts

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        started = loop.time()
        read_deadline = started + self.timeouts.read
        body_complete = False
        response_started = False

        async def bounded_receive():
            nonlocal body_complete
            if body_complete:
                return await receive()
            remaining = max(read_deadline - loop.time(), 0)
            try:
                message = await asyncio.wait_for(receive(), timeout=remaining)
            except asyncio.TimeoutError as exc:
                raise RequestReadTimeout(self.timeouts.read) from exc
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def tracked_send(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, bounded_receive, tracked_send), timeout=self.timeouts.write)
        except asyncio.TimeoutError:
            if loop.time() - started < self.timeouts.write:
                raise
            request = Request(scope)
            if response_started:
                context = request.state.context
                logger = get_logger(request.app.state.service_name, context)
                logger.warning("Response deadline exceeded after headers were sent",
                               extra={**context.log_fields(), "timeout": self.timeouts.write})
                return
            response = report_service_error(request, HandlerTimeout(self.timeouts.write))
            await response(scope, receive, send)


def create_service_app(settings: Settings, title: str, lifespan=None,
                       timeouts: ServerTimeouts = DEFAULT_TIMEOUTS) -> FastAPI:
    """FastAPI app with the shared middleware, error handler and /health route."""
    app = FastAPI(title=title, lifespan=lifespan)
    app.state.service_name = settings.service_name
    app.state.settings = settings

    # added first so it runs inside add_request_id and keeps the id header
    app.add_middleware(RequestDeadlineMiddleware, timeouts=timeouts)
    app.middleware("http")(add_request_id)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.include_router(health_router(settings))
    return app
