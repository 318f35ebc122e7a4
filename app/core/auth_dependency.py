from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.db.session import get_db
from app.db.models.user import Profile

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Profile:
    """
    Resolve the bearer token to a Profile.

    Rejects expired or malformed tokens and tokens issued before the
    profile's last sign-out. Blocked accounts are handled by the access
    guard, not here, so that /auth/me can still report the blocked flag.
    """
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized()

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        raise _unauthorized()

    profile = db.query(Profile).filter(Profile.id == int(user_id)).first()
    if not profile:
        raise _unauthorized("User not found")

    if payload.get("ver") != profile.session_version:
        raise _unauthorized("Session has been signed out")

    return profile
