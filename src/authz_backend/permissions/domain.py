"""
Scope tokens for tenant-aware permission checks.

A scope is either global (``"*"``) or one company (``"company:<uuid>"``).
Company ids are always carried in canonical form: the lower-case, hyphenated
UUID string. Anything persisted or compared goes through that form.
"""

from typing import Optional
from uuid import UUID

GLOBAL_SCOPE = "*"
COMPANY_SCOPE_PREFIX = "company"


class InvalidScopeError(ValueError):
    """Raised when a scope token is neither global nor a valid company token"""


def _canonical_uuid(value: str | UUID) -> str:
    try:
        return str(value if isinstance(value, UUID) else UUID(str(value)))
    except ValueError:
        raise InvalidScopeError(f"Invalid company id: {value!r}")


def build_scope(company_id: Optional[str | UUID] = None) -> str:
    """
    Scope token for a company, or the global scope for None.

    Any accepted UUID spelling (upper-case, ``UUID`` object) yields the
    canonical token, so ``parse_scope(build_scope(c)) == c`` holds exactly
    for canonical ids; for other spellings it returns ``canonical_company_id(c)``.
    """
    if company_id is None:
        return GLOBAL_SCOPE
    return f"{COMPANY_SCOPE_PREFIX}:{_canonical_uuid(company_id)}"


def parse_scope(token: str) -> Optional[str]:
    """Inverse of build_scope. Returns None for the global scope, else the canonical company id."""
    if token == GLOBAL_SCOPE:
        return None

    parts = token.split(":")
    if len(parts) != 2 or parts[0] != COMPANY_SCOPE_PREFIX:
        raise InvalidScopeError(f"Invalid scope format: {token!r}")

    return _canonical_uuid(parts[1])


def normalize_scope(token: str) -> str:
    """Canonical spelling of a scope token"""
    return build_scope(parse_scope(token))


def canonical_company_id(company_id: str | UUID) -> str:
    return _canonical_uuid(company_id)


def is_global(token: str) -> bool:
    return token == GLOBAL_SCOPE
