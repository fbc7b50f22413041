# API v1 router aggregation.
# Created: 2026-10-03
#
# mount_v1_routers(app) registers the REST routers at /api/v1/.
# The OAuth endpoints are mounted separately at the root by serve.py.

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

_V1_ROUTERS: list[tuple[str, str, str]] = [
    # (module_path, attr_name, tag)
    ("tokenwarden.api.v1.auth", "router", "Auth"),
    ("tokenwarden.api.v1.health", "router", "Health"),
    ("tokenwarden.api.v1.me", "router", "Me"),
]


def mount_v1_routers(app: FastAPI) -> None:
    """Mount all v1 routers on *app* at ``/api/v1``.

    A router that fails to import is a packaging bug, so the error propagates.
    """
    for module_path, attr_name, tag in _V1_ROUTERS:
        mod = importlib.import_module(module_path)
        app.include_router(getattr(mod, attr_name), prefix="/api/v1")
        logger.debug("Mounted v1 router: %s (%s)", module_path, tag)
