from __future__ import annotations

import os

from fastapi import FastAPI

from carbonledger.api.errors import install_error_handlers
from carbonledger.api.routes_public import public_router
from carbonledger.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from carbonledger.runtime.executor_boot import build_executor as _build_executor


def build_executor():
    """Build a CarbonExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `carbonledger.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load engine config + attach executor
      - False: no executor; routes needing one answer 500 not_ready
    """
    configure_structured_logging()
    mode = os.environ.get("CARBON_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Carbon Ledger API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Carbon Ledger API")

    app.state.executor = build_executor() if boot_runtime else None

    app.add_middleware(RequestLogMiddleware)
    install_error_handlers(app)
    app.include_router(public_router)

    return app
