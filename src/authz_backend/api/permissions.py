import logging
from typing import Annotated, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from authz_backend.api.exceptions import BadRequestException
from authz_backend.database import get_db
from authz_backend.permissions.auth import (
    check_permission,
    client_ip_of,
    get_current_user_id,
    get_evaluator,
    get_permission_cache,
    require_permission,
)
from authz_backend.permissions.catalog import PermissionCatalog, PermissionEntry
from authz_backend.permissions.core import AuthorizationEvaluator
from authz_backend.permissions.permission_set import CRUD_ACTIONS

logger = logging.getLogger(__name__)

permissions_router = APIRouter()
roles_router = APIRouter()


class PermissionCheck(BaseModel):
    resource: str
    company_id: Optional[str] = None
    actions: Dict[str, bool]


def get_catalog(db: Annotated[Session, Depends(get_db)]) -> PermissionCatalog:
    return PermissionCatalog(db, get_permission_cache())


@permissions_router.get("", response_model=List[PermissionEntry])
async def list_permissions(
    user_id: Annotated[str, Depends(get_current_user_id)],
    catalog: Annotated[PermissionCatalog, Depends(get_catalog)],
    include_inactive: bool = False,
):
    return await catalog.list_permissions(include_inactive)


@permissions_router.get("/{name}/check", response_model=PermissionCheck)
async def check_permission_actions(
    name: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    evaluator: Annotated[AuthorizationEvaluator, Depends(get_evaluator)],
    action: Optional[str] = None,
    company_id: Optional[str] = None,
):
    """Decisions of the current user on a resource, for one action or all of them"""

    if action is not None and action.lower() not in CRUD_ACTIONS:
        raise BadRequestException(f"Unknown action '{action}'")

    actions = [action.lower()] if action is not None else list(CRUD_ACTIONS)
    client_ip = client_ip_of(request)

    decisions = {}
    for requested in actions:
        decisions[requested] = await check_permission(evaluator, user_id, name, requested, company_id, client_ip)

    return PermissionCheck(resource=name, company_id=company_id, actions=decisions)


@roles_router.post("/{role_id}/invalidate", status_code=204)
async def invalidate_role_cache(
    role_id: str,
    user_id: Annotated[str, Depends(require_permission("roles", "update"))],
    evaluator: Annotated[AuthorizationEvaluator, Depends(get_evaluator)],
):
    await evaluator.invalidate_role(role_id)
    logger.info(f"User {user_id} invalidated cached permissions of role {role_id}")
