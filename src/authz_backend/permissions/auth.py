"""
FastAPI integration of the authorization core.

``require_permission`` builds a route dependency that resolves the calling
user, runs the permission check and turns the outcome into HTTP errors.
"""

import logging
from typing import Annotated, Callable, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authz_backend.api.exceptions import (
    BadRequestException,
    ForbiddenException,
    InternalServerException,
    UnauthorizedException,
)
from authz_backend.database import get_db
from authz_backend.permissions.cache import PermissionCache
from authz_backend.permissions.core import AuthorizationEvaluator
from authz_backend.permissions.domain import InvalidScopeError
from authz_backend.repositories.base import NotFoundError

logger = logging.getLogger(__name__)

_permission_cache: Optional[PermissionCache] = None


def get_permission_cache() -> PermissionCache:
    """Process-wide permission cache"""
    global _permission_cache
    if _permission_cache is None:
        _permission_cache = PermissionCache()
    return _permission_cache


def get_evaluator(db: Annotated[Session, Depends(get_db)]) -> AuthorizationEvaluator:
    return AuthorizationEvaluator(db, get_permission_cache())


def get_current_user_id(x_user_id: Annotated[Optional[str], Header()] = None) -> str:
    """
    Caller identity as set by the authentication layer in front of this service.
    Deployments with their own authentication override this dependency.
    """
    if not x_user_id:
        raise UnauthorizedException("No user identity provided")
    return x_user_id


def client_ip_of(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def check_permission(
    evaluator: AuthorizationEvaluator,
    user_id: str,
    resource: str,
    action: str,
    company_id: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> bool:
    """Run a check, translating core errors into HTTP exceptions"""
    try:
        return await evaluator.is_allowed(user_id, resource, action, company_id, client_ip=client_ip)
    except NotFoundError:
        raise UnauthorizedException("Unknown user")
    except InvalidScopeError as e:
        raise BadRequestException(str(e))
    except SQLAlchemyError as e:
        logger.error(f"Permission check {resource}.{action} for user {user_id} failed: {e}")
        raise InternalServerException("Permission check failed")


def require_permission(resource: str, action: str) -> Callable:
    """
    Route dependency guarding an endpoint with a permission check.

    The optional ``company_id`` query parameter selects the company scope.
    Returns the id of the permitted user.
    """

    async def dependency(
        request: Request,
        user_id: Annotated[str, Depends(get_current_user_id)],
        evaluator: Annotated[AuthorizationEvaluator, Depends(get_evaluator)],
        company_id: Annotated[Optional[str], Query()] = None,
    ) -> str:
        allowed = await check_permission(
            evaluator, user_id, resource, action, company_id, client_ip_of(request)
        )
        if not allowed:
            logger.info(f"Forbidden {resource}.{action} for user {user_id}")
            raise ForbiddenException(f"Permission denied: {resource}.{action}")
        return user_id

    return dependency
