"""Listener binding, serving and graceful shutdown.

uvicorn owns the accept loop and the SIGINT/SIGTERM handling: on a signal it
stops accepting connections, lets in-flight requests finish for up to
`ServerTimeouts.shutdown` seconds and then cancels whatever is left.
"""
import logging
import signal
import socket
import threading
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI

from common.config import Settings
from common.errors import ListenerBindFailure

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass(frozen=True)
class ServerTimeouts:
    read: float = 5.0
    write: float = 10.0
    idle: float = 15.0
    shutdown: float = 10.0


DEFAULT_TIMEOUTS = ServerTimeouts()


class ServiceServer(uvicorn.Server):
    async def shutdown(self, sockets=None):
        logger.info("Initiating graceful shutdown",
                    extra={"timeout": f"{self.config.timeout_graceful_shutdown}s"})
        await super().shutdown(sockets=sockets)
        logger.info("Server shutdown completed successfully")


def bind_listener(port: int, host: str = "0.0.0.0") -> socket.socket:
    try:
        return socket.create_server((host, port))
    except OSError as exc:
        logger.error("Server startup failed", extra={"error": str(exc), "port": str(port)})
        raise ListenerBindFailure(f"cannot listen on {host}:{port}: {exc}") from exc


def build_server(app: FastAPI, timeouts: ServerTimeouts = DEFAULT_TIMEOUTS) -> ServiceServer:
    config = uvicorn.Config(
        app,
        lifespan="on",
        log_config=None,
        timeout_keep_alive=int(timeouts.idle),
        timeout_graceful_shutdown=int(timeouts.shutdown),
    )
    return ServiceServer(config)


def _signal_replayed(signum, frame):
    # uvicorn re-raises the signal it handled once it has shut down
    logger.debug("Signal handled by graceful shutdown", extra={"signal": signal.Signals(signum).name})


def run_service(app: FastAPI, settings: Settings, timeouts: ServerTimeouts = DEFAULT_TIMEOUTS):
    """Bind, serve until a termination signal arrives, then drain and return."""
    sock = bind_listener(settings.port_number)
    server = build_server(app, timeouts)

    if threading.current_thread() is threading.main_thread():
        for sig in HANDLED_SIGNALS:
            signal.signal(sig, _signal_replayed)

    logger.info("Initializing server", extra=settings.summary())
    server.run(sockets=[sock])
