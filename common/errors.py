"""Error taxonomy shared by both services.

Every ServiceError is turned into a plain-text response by
`service_error_handler`; the body is the same message that gets logged.
"""
import enum
import logging

from fastapi import Request
from fastapi.responses import PlainTextResponse

from common.logging import get_logger


class CallStage(str, enum.Enum):
    """Where an outbound call to the upstream service failed."""

    REQUEST_CONSTRUCTION = "request_construction"
    DISPATCH = "dispatch"
    STATUS = "status"
    BODY_READ = "body_read"
    BODY_DECODE = "body_decode"


class ServiceError(Exception):
    status_code = 500
    log_level = logging.ERROR

    def __init__(self, message: str, status_code: int | None = None, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.cause = cause

    @property
    def log_message(self) -> str:
        return self.message

    def log_fields(self) -> dict:
        detail = self.cause if self.cause is not None else self
        return {"error": str(detail) or type(detail).__name__}


class AuthenticationFailure(ServiceError):
    status_code = 401
    log_level = logging.WARNING

    def __init__(self, masked_key: str):
        super().__init__("Unauthorized")
        self.masked_key = masked_key

    @property
    def log_message(self) -> str:
        return "Authentication failed"

    def log_fields(self) -> dict:
        return {"auth_key_provided": self.masked_key}


class OutboundCallError(ServiceError):
    stage: CallStage

    def __init__(self, message: str, stage: CallStage, status_code: int | None = None,
                 cause: BaseException | None = None):
        super().__init__(message, status_code=status_code, cause=cause)
        self.stage = stage

    def log_fields(self) -> dict:
        return {**super().log_fields(), "stage": self.stage.value}


class RequestConstructionFailure(OutboundCallError):
    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message, CallStage.REQUEST_CONSTRUCTION, cause=cause)


class UpstreamUnavailable(OutboundCallError):
    status_code = 503

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message, CallStage.DISPATCH, cause=cause)


class UpstreamNonSuccess(OutboundCallError):
    def __init__(self, message: str, status_code: int):
        super().__init__(message, CallStage.STATUS, status_code=status_code)

    def log_fields(self) -> dict:
        return {"error": f"upstream returned status {self.status_code}", "stage": self.stage.value}


class ResponseDecodeFailure(OutboundCallError):
    def __init__(self, message: str, stage: CallStage, cause: BaseException | None = None):
        super().__init__(message, stage, cause=cause)


class EncodingFailure(ServiceError):
    pass


class RequestReadTimeout(ServiceError):
    status_code = 408
    log_level = logging.WARNING

    def __init__(self, budget: float):
        super().__init__("Request Timeout", cause=TimeoutError(f"request body not received within {budget:g}s"))

    @property
    def log_message(self) -> str:
        return "Request read timed out"


class HandlerTimeout(ServiceError):
    status_code = 503

    def __init__(self, budget: float):
        super().__init__("Request timed out", cause=TimeoutError(f"no response within {budget:g}s"))


class ListenerBindFailure(Exception):
    """The listening socket could not be bound; the process cannot serve."""


class ConfigurationError(Exception):
    pass


async def service_error_handler(request: Request, exc: ServiceError):
    return report_service_error(request, exc)


def report_service_error(request: Request, exc: ServiceError) -> PlainTextResponse:
    context = request.state.context
    logger = get_logger(request.app.state.service_name, context)
    logger.log(
        exc.log_level,
        exc.log_message,
        extra={**exc.log_fields(), **context.log_fields(), "status_code": exc.status_code},
    )
    return PlainTextResponse(exc.message, status_code=exc.status_code)
