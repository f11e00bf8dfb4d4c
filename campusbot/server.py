"""Server entry point: load the index, bind a port, serve with Hypercorn.

Usage:
    python -m campusbot.server
"""
import asyncio
import errno
import json
import socket
import sys
from pathlib import Path
from typing import Tuple

from hypercorn.asyncio import serve
from hypercorn.config import Config
import structlog

from campusbot import config
from campusbot.errors import IndexNotReadyError, PortUnavailableError
from campusbot.logging_setup import configure_logging
from campusbot.main import create_app
from campusbot.rag.pipeline import build_pipeline

logger = structlog.get_logger()


def find_available_port(
    host: str = None, base_port: int = None, max_tries: int = None
) -> Tuple[socket.socket, int]:
    """Bind the first free port in ``[base_port, base_port + max_tries)``.

    Only "address in use" moves the scan on to the next port; any other
    bind error is raised immediately.

    Returns:
        The bound (not yet listening) socket and its port

    Raises:
        PortUnavailableError: If every candidate port is taken
    """
    host = host or config.HOST
    base_port = config.BASE_PORT if base_port is None else base_port
    max_tries = max_tries or config.MAX_PORT_TRIES

    for port in range(base_port, base_port + max_tries):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                logger.info("port_in_use", port=port)
                continue
            raise
        logger.info("port_bound", host=host, port=port)
        return sock, port

    raise PortUnavailableError(f"No available ports found after {max_tries} attempts")


def write_active_port(port: int, path: Path = None) -> Path:
    """Record the bound port for the companion front-end."""
    path = Path(path or config.ACTIVE_PORT_FILE)
    path.write_text(json.dumps({"port": port}))
    logger.info("active_port_written", path=str(path), port=port)
    return path


def fd_bind(sock: socket.socket) -> str:
    """Hand a bound socket over to Hypercorn as an ``fd://`` bind.

    Hypercorn wraps the descriptor in its own socket and closes it on
    shutdown, so ``sock`` is detached and must not be used afterwards.
    """
    return f"fd://{sock.detach()}"


async def run() -> None:
    pipeline = build_pipeline()
    await pipeline.retriever.load()

    app = create_app(pipeline)

    sock, port = find_available_port()
    sock.listen(socket.SOMAXCONN)
    write_active_port(port)

    hypercorn_config = Config()
    hypercorn_config.bind = [fd_bind(sock)]

    logger.info(
        "server_started",
        port=port,
        health_url=f"http://localhost:{port}/health",
    )
    await serve(app, hypercorn_config)


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run())
    except (IndexNotReadyError, PortUnavailableError) as e:
        logger.error("server_start_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("server_stopped")


if __name__ == "__main__":
    main()
