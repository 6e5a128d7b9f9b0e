"""HTTP client for calling the upstream greeting service.

Every failure is classified into an OutboundCallError subclass and raised
straight away; nothing is retried.
"""
import asyncio
from typing import Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from common.auth import AUTH_HEADER, mask_auth_key
from common.context import REQUEST_ID_HEADER, RequestContext
from common.errors import (
    CallStage,
    RequestConstructionFailure,
    ResponseDecodeFailure,
    UpstreamNonSuccess,
    UpstreamUnavailable,
)
from common.logging import get_logger

DEFAULT_TIMEOUT = 5.0

ModelT = TypeVar("ModelT", bound=BaseModel)


class UpstreamClient:
    def __init__(self, base_url: str, auth_key: str, logger_name: str,
                 upstream_name: str = "Service A", timeout: float = DEFAULT_TIMEOUT,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url
        self.upstream_name = upstream_name
        self._auth_key = auth_key
        self._logger_name = logger_name
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    async def aclose(self):
        await self._client.aclose()

    def build_request(self, context: RequestContext, path: str) -> httpx.Request:
        try:
            url = httpx.URL(f"{self.base_url.rstrip('/')}{path}")
        except httpx.InvalidURL as exc:
            raise RequestConstructionFailure(
                f"Failed to create request to {self.upstream_name}", cause=exc
            ) from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise RequestConstructionFailure(
                f"Failed to create request to {self.upstream_name}",
                cause=ValueError(f"malformed upstream address: {self.base_url!r}"),
            )
        headers = {AUTH_HEADER: self._auth_key, REQUEST_ID_HEADER: context.request_id}
        return self._client.build_request("GET", url, headers=headers)

    async def get_json(self, context: RequestContext, path: str, model: Type[ModelT]) -> ModelT:
        """GET `path` on the upstream and validate the JSON body into `model`.

        The whole exchange, from dispatch to the last body byte, shares one
        deadline of `self.timeout` seconds.
        """
        logger = get_logger(self._logger_name, context)
        request = self.build_request(context, path)

        logger.info(
            f"Calling {self.upstream_name}",
            extra={"service_a_url": self.base_url, "auth_key_masked": mask_auth_key(self._auth_key)},
        )
        try:
            body = await asyncio.wait_for(self._fetch(request, logger), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailable(
                f"Failed to call {self.upstream_name}",
                cause=TimeoutError(f"no complete response within {self.timeout:g}s"),
            ) from exc

        try:
            return model.model_validate_json(body)
        except ValidationError as exc:
            raise ResponseDecodeFailure(
                f"Failed to parse {self.upstream_name} response", CallStage.BODY_DECODE, cause=exc
            ) from exc

    async def _fetch(self, request: httpx.Request, logger) -> bytes:
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as exc:
            raise UpstreamUnavailable(f"Failed to call {self.upstream_name}", cause=exc) from exc

        try:
            logger.info(f"Received response from {self.upstream_name}",
                        extra={"status_code": response.status_code})

            if response.status_code != 200:
                raise UpstreamNonSuccess(f"{self.upstream_name} request failed", response.status_code)

            try:
                return await response.aread()
            except httpx.HTTPError as exc:
                raise ResponseDecodeFailure(
                    f"Failed to read {self.upstream_name} response", CallStage.BODY_READ, cause=exc
                ) from exc
        finally:
            await response.aclose()
