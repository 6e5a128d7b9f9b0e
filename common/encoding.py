import json
import logging
from typing import Any

from fastapi import Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from common.context import REQUEST_ID_HEADER, RequestContext
from common.errors import EncodingFailure


def serialize(value: Any) -> bytes:
    if isinstance(value, BaseModel):
        return value.model_dump_json().encode("utf-8")
    return json.dumps(value).encode("utf-8")


def json_response(context: RequestContext, value: Any, logger: logging.LoggerAdapter,
                  status_code: int = 200) -> Response:
    """Serialize `value` fully before committing any status or header.

    A value that cannot be encoded yields a plain-text 500 instead of a
    half-written JSON body.
    """
    try:
        body = serialize(value)
    except (TypeError, ValueError) as exc:
        failure = EncodingFailure("Internal Server Error", cause=exc)
        logger.error(
            "Failed to encode response",
            extra={
                **failure.log_fields(),
                **context.log_fields(),
                "processing_time": context.elapsed(),
            },
        )
        return PlainTextResponse(failure.message, status_code=failure.status_code)

    return Response(
        content=body,
        status_code=status_code,
        media_type="application/json",
        headers={REQUEST_ID_HEADER: context.request_id},
    )
