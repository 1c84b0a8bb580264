from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from carbonledger.api.errors import ApiError
from carbonledger.api.routes_public_parts.common import _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/projects")
def list_projects(request: Request) -> Json:
    return {"ok": True, "items": _view(request).list_projects()}


@router.get("/projects/{project_id}")
def get_project(request: Request, project_id: int) -> Json:
    pr = _view(request).get_project(project_id)
    if pr is None:
        raise ApiError.not_found("not_found", "project not found", {"project_id": project_id})
    return {"ok": True, "project": pr}
