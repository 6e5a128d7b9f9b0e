"""Environment-sourced service configuration, loaded once at startup."""
import logging
import os
from dataclasses import dataclass
from typing import Mapping

from common.auth import mask_auth_key
from common.errors import ConfigurationError
from common.logging import parse_level

logger = logging.getLogger(__name__)

DEFAULT_AUTH_KEY = "default-secret-key"


@dataclass(frozen=True)
class ServiceProfile:
    """Which environment variables a service reads and their defaults."""

    name: str
    default_port: str
    auth_key_var: str
    upstream_url_var: str | None = None
    default_upstream_url: str | None = None


SERVICE_A = ServiceProfile(name="service_a", default_port="8080", auth_key_var="AUTH_KEY")
SERVICE_B = ServiceProfile(
    name="service_b",
    default_port="8081",
    auth_key_var="SERVICE_A_AUTH_KEY",
    upstream_url_var="SERVICE_A_URL",
    default_upstream_url="http://service-a:8080",
)


@dataclass(frozen=True)
class Settings:
    service_name: str
    port: str
    log_level: int
    auth_key: str
    upstream_url: str | None = None

    @property
    def port_number(self) -> int:
        return int(self.port)

    def summary(self) -> dict:
        """Loggable view of the settings; the key is reported only as present or not."""
        summary = {
            "port": self.port,
            "log_level": logging.getLevelName(self.log_level),
            "auth_configured": bool(self.auth_key),
        }
        if self.upstream_url is not None:
            summary["service_a_url"] = self.upstream_url
        return summary


def load_settings(profile: ServiceProfile, environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    port = env.get("PORT", "")
    if not port:
        port = profile.default_port
        logger.warning("No port specified, using default", extra={"default_port": port})
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ConfigurationError(f"invalid PORT value: {port!r}")

    level_name = env.get("LOG_LEVEL", "")
    log_level = parse_level(level_name) if level_name else None
    if log_level is None:
        log_level = logging.INFO
        if level_name:
            logger.warning("Unknown log level, using default",
                           extra={"log_level": level_name, "default_log_level": "INFO"})

    auth_key = env.get(profile.auth_key_var, "")
    if not auth_key:
        auth_key = DEFAULT_AUTH_KEY
        logger.warning(
            "No authentication key provided, using default. This is NOT recommended for production!",
            extra={"default_key": mask_auth_key(auth_key)},
        )

    upstream_url = None
    if profile.upstream_url_var:
        upstream_url = env.get(profile.upstream_url_var, "")
        if not upstream_url:
            upstream_url = profile.default_upstream_url
            logger.warning("No Service A URL specified, using default", extra={"default_url": upstream_url})

    return Settings(
        service_name=profile.name,
        port=port,
        log_level=log_level,
        auth_key=auth_key,
        upstream_url=upstream_url,
    )
