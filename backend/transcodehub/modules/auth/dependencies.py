"""FastAPI dependencies for claims and scope."""

from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from transcodehub.core.container import ServiceContainer
from transcodehub.core.exceptions import AuthenticationError
from transcodehub.core.logging import bind_owner
from transcodehub.modules.auth.scope import AccessScope, resolve_scope

security = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    try:
        return request.app.state.container
    except AttributeError as exc:
        raise RuntimeError("Service container is not configured") from exc


async def get_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    """Verified claims of the caller.

    Raises:
        AuthenticationError: If no bearer token was sent or it is invalid
    """
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    return container.verifier.verify(credentials.credentials)


async def get_scope(
    claims: dict[str, Any] = Depends(get_claims),
    container: ServiceContainer = Depends(get_container),
) -> AccessScope:
    settings = container.settings
    scope = resolve_scope(
        claims,
        owner_claim=settings.OWNER_CLAIM,
        group_claims=settings.GROUP_CLAIMS,
        admin_group=settings.ADMIN_GROUP,
    )
    bind_owner(scope.owner_id)
    return scope
