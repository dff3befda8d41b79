"""FastAPI dependency: get_current_user.

Usage in any protected router:
    from src.sc_gateway.auth.dependencies import UserRef, get_current_user

    @router.get("/protected")
    async def protected(user: Annotated[UserRef, Depends(get_current_user)]):
        ...

User accounts live in the external identity service, so the current user is
resolved from the token alone; there is no users table to look up.
"""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from src.sc_common.errors import InvalidCredentialsError
from src.sc_gateway.auth.jwt_handler import decode_token

# tokenUrl tells Swagger UI where to get a token (issued by the identity service)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


@dataclass(frozen=True)
class UserRef:
    id: str


async def get_current_user(token: str = Depends(oauth2_scheme)) -> UserRef:
    """Validate the JWT Bearer token and return the caller's identity.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    """
    try:
        payload = decode_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id = payload.get("sub")
    if not user_id:
        raise _CREDENTIALS_EXCEPTION
    return UserRef(id=str(user_id))
