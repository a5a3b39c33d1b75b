# API v1 router aggregation.
# Created: 2026-02-20

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

_V1_ROUTERS: list[tuple[str, str]] = [
    # (module_path, attr_name)
    ("grantgate.api.v1.oauth2", "router"),
]


def mount_v1_routers(app: FastAPI) -> None:
    """Mount all v1 routers on *app* at ``/api/v1``."""
    for module_path, attr_name in _V1_ROUTERS:
        mod = importlib.import_module(module_path)
        app.include_router(getattr(mod, attr_name), prefix="/api/v1")
        logger.debug("Mounted %s at /api/v1", module_path)
