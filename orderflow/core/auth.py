"""
Request authentication: bearer tokens issued by the external auth service.
"""
from dataclasses import dataclass
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from orderflow.core.exceptions import ForbiddenError, UnauthorizedError
from orderflow.core.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    customer_id: UUID
    email: Optional[str] = None
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Principal:
    if credentials is None:
        raise UnauthorizedError("Authentication required")

    payload = decode_access_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise UnauthorizedError("Invalid or expired token")

    try:
        customer_id = UUID(str(payload["sub"]))
    except ValueError:
        raise UnauthorizedError("Invalid token subject")

    email = payload.get("email")
    return Principal(
        customer_id=customer_id,
        email=email.lower() if email else None,
        role=payload.get("role", "customer"),
    )


async def require_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    if not principal.is_admin:
        raise ForbiddenError("Admin access required")
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(require_admin)]
