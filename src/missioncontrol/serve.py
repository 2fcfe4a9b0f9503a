"""API server for ``mc-api``.

Mounts the Mission Control router under ``/api/mission-control``. Producers
(agents, scripts) call it to create tasks, post messages and manage
subscriptions; the delivery daemon runs as its own process over the same
store.
"""

from __future__ import annotations

import argparse
import logging

from fastapi import FastAPI

from missioncontrol.config import get_settings
from missioncontrol.logging_setup import setup_logging

logger = logging.getLogger(__name__)

API_PREFIX = "/api/mission-control"


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    from missioncontrol.api import router

    app = FastAPI(
        title="Mission Control API",
        description="Agent tasks, thread subscriptions and notifications.",
        version="1.0.0",
        docs_url=f"{API_PREFIX}/docs",
        openapi_url=f"{API_PREFIX}/openapi.json",
    )
    app.include_router(router, prefix=API_PREFIX)
    return app


def run_api_server(host: str = "127.0.0.1", port: int = 8000, dev: bool = False) -> None:
    """Start the API server."""
    import uvicorn

    print("\n" + "=" * 50)
    print("\U0001f6f0  MISSION CONTROL API")
    print("=" * 50)
    print(f"\n\U0001f310 API docs: http://{host}:{port}{API_PREFIX}/docs\n")

    if dev:
        uvicorn.run(
            "missioncontrol.serve:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level="debug",
        )
    else:
        uvicorn.run(create_app(), host=host, port=port)


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Mission Control API server")
    parser.add_argument("--host", default=settings.api_host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Bind port")
    parser.add_argument("--dev", action="store_true", help="Auto-reload on code changes")
    args = parser.parse_args()

    setup_logging(settings.log_level)
    run_api_server(host=args.host, port=args.port, dev=args.dev)


if __name__ == "__main__":
    main()
