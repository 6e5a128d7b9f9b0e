"""Shared-key authentication for the greeting endpoint."""
import hmac
from typing import Protocol

from fastapi import Depends, Request

from common.context import RequestContext, get_request_context
from common.errors import AuthenticationFailure
from common.logging import get_logger

AUTH_HEADER = "X-Auth-Key"
KEY_MASK = "****"


def mask_auth_key(key: str) -> str:
    """Keep the first and last two characters of a credential for logging."""
    if len(key) > 4:
        return key[:2] + KEY_MASK + key[-2:]
    return KEY_MASK


class CredentialVerifier(Protocol):
    def verify(self, provided: str) -> bool:
        ...


class StaticKeyVerifier:
    """Accepts exactly one configured key, compared in constant time."""

    def __init__(self, key: str):
        self._key = key.encode("utf-8")

    def verify(self, provided: str) -> bool:
        return hmac.compare_digest(provided.encode("utf-8"), self._key)


def require_auth_key(verifier: CredentialVerifier, logger_name: str):
    """Build a dependency that rejects requests without a valid `X-Auth-Key`.

    Raising AuthenticationFailure short-circuits the route, so the wrapped
    handler never runs for a rejected request.
    """

    async def authenticate(request: Request, context: RequestContext = Depends(get_request_context)):
        logger = get_logger(logger_name, context)
        provided = request.headers.get(AUTH_HEADER, "")
        logger.info("Authentication attempt", extra=context.log_fields())

        if not verifier.verify(provided):
            raise AuthenticationFailure(mask_auth_key(provided))

        logger.info("Authentication successful", extra=context.log_fields())
        return context

    return authenticate
