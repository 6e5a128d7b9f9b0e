"""Per-request identity.

Each inbound request gets a fresh correlation id and an immutable
RequestContext that handlers receive explicitly through `get_request_context`.
"""
import time
import uuid
from dataclasses import dataclass, field

from fastapi import Request

REQUEST_ID_HEADER = "X-Request-ID"


def new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    client_ip: str
    method: str
    path: str
    started_at: float = field(default_factory=time.perf_counter)

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        client = request.client
        client_ip = f"{client.host}:{client.port}" if client else ""
        return cls(
            request_id=new_request_id(),
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

    def log_fields(self) -> dict:
        return {
            "client_ip": self.client_ip,
            "method": self.method,
            "path": self.path,
        }

    def elapsed(self) -> float:
        """Seconds since the request entered the service."""
        return time.perf_counter() - self.started_at


def get_request_context(request: Request) -> RequestContext:
    return request.state.context
