import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .constants import Role, parse_role
from .security_utils import TokenExpiredError, verify_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer()


@dataclass(frozen=True)
class Identity:
    """The authenticated caller: who they are and the role their token grants"""

    user_id: int
    role: Role


def identity_from_claims(claims: dict) -> Identity:
    """Build an Identity from decoded token claims, raising 401 on bad claims"""
    subject = claims.get("sub") or claims.get("userId")
    try:
        user_id = int(subject)
        role = parse_role(claims.get("role", Role.PATIENT.value))
    except (TypeError, ValueError) as e:
        logger.warning(f"⚠️ Token carries unusable claims: sub={subject!r} role={claims.get('role')!r}")
        raise HTTPException(status_code=401, detail="Invalid token claims") from e
    return Identity(user_id=user_id, role=role)


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Identity:
    """Resolve the caller's identity from the Bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    try:
        claims = verify_jwt_token(token)
    except TokenExpiredError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e

    if claims is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    identity = identity_from_claims(claims)
    logger.debug(f"✅ Authenticated user {identity.user_id} as {identity.role.value}")
    return identity
