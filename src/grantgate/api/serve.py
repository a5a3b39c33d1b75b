"""API server for ``grantgate serve``.

Mounts the versioned ``/api/v1/`` routers. The embedding application is
expected to register its grant handlers on ``get_oauth_server().handlers``
before the first request.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def create_api_app():
    """Build a FastAPI application with the v1 routers."""
    from fastapi import FastAPI

    from grantgate import __version__
    from grantgate.api.v1 import mount_v1_routers

    app = FastAPI(
        title="grantgate",
        description="OAuth2 token endpoint.",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )
    mount_v1_routers(app)
    return app


def run_api_server(host: str = "127.0.0.1", port: int = 8787, dev: bool = False) -> None:
    """Start the API server."""
    import uvicorn

    if host == "0.0.0.0":
        logger.warning("Listening on all interfaces; put TLS in front of the token endpoint")

    logger.info("grantgate API on http://%s:%d/api/v1/oauth/token", host, port)
    if dev:
        uvicorn.run(
            "grantgate.api.serve:create_api_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_config=None,
        )
    else:
        uvicorn.run(create_api_app(), host=host, port=port, log_config=None)
