"""FastAPI dependencies for authentication and authorization."""

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from crestcat.auth.jwt import decode_access_token
from crestcat.auth.principal import Principal
from crestcat.core.exceptions import AuthenticationError
from crestcat.core.logging import user_id as user_id_ctx

# auto_error=False so a missing header goes through our own error format
security = HTTPBearer(auto_error=False)


async def get_current_principal(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)]
) -> Principal:
    """
    Resolve the caller from the bearer token.

    The principal is kept on ``request.state`` so the error handler can
    decide how much detail the caller may see.

    Raises:
        AuthenticationError: Missing or invalid token
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    principal = decode_access_token(credentials.credentials)
    request.state.principal = principal
    user_id_ctx.set(str(principal.user_id))
    return principal


async def get_admin_principal(
    principal: Annotated[Principal, Depends(get_current_principal)]
) -> Principal:
    """
    Get current admin principal.

    Raises:
        UnauthorizedError: Caller is not an admin
    """
    principal.require_admin()
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(get_admin_principal)]
