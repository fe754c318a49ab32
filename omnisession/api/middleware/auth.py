"""Bearer-token authentication.

The token's `tenant_id` claim is the company and `sub` is the user; both
are required because every session is keyed on them.
"""

import os
from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from omnisession.api.exceptions import UnauthorizedError
from omnisession.api.middleware.context import update_request_context
from omnisession.api.models.context import TenantContext
from omnisession.observability.logging import get_logger

logger = get_logger(__name__)

security_scheme = HTTPBearer(auto_error=False)

REQUIRED_CLAIMS = ("tenant_id", "sub")


def get_jwt_secret() -> str:
    """OMNISESSION_JWT_SECRET; the service cannot authenticate without it."""
    secret = os.environ.get("OMNISESSION_JWT_SECRET")
    if not secret:
        raise RuntimeError("OMNISESSION_JWT_SECRET environment variable not set")
    return secret


def get_jwt_algorithm() -> str:
    return os.environ.get("OMNISESSION_JWT_ALGORITHM", "HS256")


def decode_tenant_token(token: str) -> TenantContext:
    """Verify a bearer token and map its claims onto a TenantContext.

    Raises:
        UnauthorizedError: bad signature, expired, or missing/invalid claims
    """
    try:
        claims: dict[str, Any] = jwt.decode(
            token, get_jwt_secret(), algorithms=[get_jwt_algorithm()]
        )
    except JWTError as e:
        logger.warning("auth_jwt_error", error=str(e))
        raise UnauthorizedError("Invalid or expired token") from None

    missing = [claim for claim in REQUIRED_CLAIMS if not claims.get(claim)]
    if missing:
        logger.warning("auth_missing_claims", missing=missing)
        raise UnauthorizedError("Token missing tenant_id or sub claim")

    try:
        return TenantContext(
            company_id=claims["tenant_id"],
            user_id=str(claims["sub"]),
            roles=claims.get("roles", []),
        )
    except ValidationError as e:
        logger.warning("auth_validation_error", error=str(e))
        raise UnauthorizedError("Invalid token claims") from None


async def get_tenant_context(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)],
) -> TenantContext:
    """FastAPI dependency: the authenticated company and user."""
    if credentials is None:
        logger.warning("auth_missing_token", path=request.url.path)
        raise UnauthorizedError("Missing authentication token")

    context = decode_tenant_token(credentials.credentials)
    update_request_context(company_id=context.company_id)
    logger.debug("auth_success", company_id=str(context.company_id))
    return context


TenantContextDep = Annotated[TenantContext, Depends(get_tenant_context)]
