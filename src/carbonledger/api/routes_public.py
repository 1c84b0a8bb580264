# src/carbonledger/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from carbonledger.api.routes_public_parts.accounts import router as accounts_router
from carbonledger.api.routes_public_parts.gov import router as gov_router
from carbonledger.api.routes_public_parts.health import router as health_router
from carbonledger.api.routes_public_parts.ledger import router as ledger_router
from carbonledger.api.routes_public_parts.metrics import router as metrics_router
from carbonledger.api.routes_public_parts.projects import router as projects_router
from carbonledger.api.routes_public_parts.tx import router as tx_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])
public_router.include_router(projects_router, prefix="/v1", tags=["projects"])
public_router.include_router(accounts_router, prefix="/v1", tags=["accounts"])
public_router.include_router(ledger_router, prefix="/v1", tags=["ledger"])
public_router.include_router(gov_router, prefix="/v1", tags=["governance"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
