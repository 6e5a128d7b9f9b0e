from datetime import datetime, timezone

from pydantic import BaseModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GreetingResponse(BaseModel):
    message: str
    request_id: str
    timestamp: datetime


class UpstreamGreeting(BaseModel):
    """Service A's greeting as read by Service B; missing fields stay empty."""

    message: str = ""
    request_id: str = ""
    timestamp: datetime | None = None


class CombinedResponse(BaseModel):
    service_a_message: str
    service_b_message: str
    request_id: str
    timestamp: datetime


class HealthStatus(BaseModel):
    status: str
    timestamp: str
    request_id: str
    server_port: str
