import asyncio
import click

from authz_backend.database import get_db
from authz_backend.permissions.cache import PermissionCache
from authz_backend.permissions.core import AuthorizationEvaluator
from authz_backend.permissions.domain import InvalidScopeError
from authz_backend.permissions.permission_set import CRUD_ACTIONS
from authz_backend.repositories.base import NotFoundError


def build_evaluator(db) -> AuthorizationEvaluator:
    return AuthorizationEvaluator(db, PermissionCache())


@click.command()
@click.option("--user", "-u", "user_id", required=True, help="User id")
@click.option("--resource", "-r", "resource", required=True)
@click.option("--action", "-a", "action", type=click.Choice(CRUD_ACTIONS, case_sensitive=False), required=True)
@click.option("--company", "-c", "company_id", default=None, help="Company id for a company-scoped check")
def check(user_id, resource, action, company_id):
    """Decide one permission check. Exits with status 1 when denied."""

    with next(get_db()) as db:
        evaluator = build_evaluator(db)
        try:
            allowed = asyncio.run(evaluator.is_allowed(user_id, resource, action, company_id))
        except NotFoundError as e:
            raise click.ClickException(str(e))
        except InvalidScopeError as e:
            raise click.BadParameter(str(e), param_hint="--company")

    if allowed:
        click.echo(f"[{click.style('ALLOWED', fg='green')}] {resource}.{action}")
    else:
        click.echo(f"[{click.style('DENIED', fg='red')}] {resource}.{action}")
        click.get_current_context().exit(1)


@click.command()
@click.argument("role_id")
def effective(role_id):
    """Print the resolved permission set of a role"""

    with next(get_db()) as db:
        permission_set = asyncio.run(build_evaluator(db).effective_permissions(role_id))

    if permission_set.is_empty():
        click.echo(f"Role {role_id} grants nothing")
        return

    for resource, action in permission_set.grants():
        click.echo(f"{resource}.{action}")


@click.command()
@click.argument("role_id")
def invalidate(role_id):
    """Drop the cached permission set of a role"""

    with next(get_db()) as db:
        removed = asyncio.run(build_evaluator(db).invalidate_role(role_id))

    if removed:
        click.echo(f"Invalidated cached permissions of role {role_id}")
    else:
        click.echo(f"Cache unavailable, role {role_id} expires with its TTL")
