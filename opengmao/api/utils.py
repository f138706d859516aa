"""
JWT utilities for issuing and verifying access tokens, plus the JSON error
helper used by routes whose clients read an `error` key.

Functions
---------
create_access_token(data: dict) -> str
    Creates a signed JWT access token with an expiration (`exp`) claim.
verify_token(token: str) -> str | None
    Verify a JWT's signature & expiration and return the subject (`sub`) if valid.
error_response(status_code: int, error: str, **extra) -> JSONResponse
    `{"error": ...}` body with the given status.

Environment contract (from `settings`)
--------------------------------------
SECRET_KEY : str
    HMAC signing key for JWTs.
ALGORITHM : str
    JWT signing algorithm (e.g., "HS256").
ACCESS_TOKEN_EXPIRE_MINUTES : int
    Token lifetime window in minutes.
"""

from datetime import datetime
from typing import Optional

from fastapi.responses import JSONResponse
from jose import jwt, JWTError
from opengmao.database.config.config import settings
import logging

logger = logging.getLogger("uvicorn")


def create_access_token(data: dict) -> str:
    """
    Create a signed JWT access token.

    Parameters
    ----------
    data : dict
        Claims to embed in the token; `sub` holds the user id and is read back
        by `verify_token`.

    Returns
    -------
    str
        Encoded JWT string.

    Notes
    ----------
    - Adds an `exp` (expiration) claim calculated from ACCESS_TOKEN_EXPIRE_MINUTES.
    - Uses `settings.SECRET_KEY` and `settings.ALGORITHM` for signing.
    """
    expiration_time = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    encoding = data.copy()
    # exp is a NumericDate (seconds since epoch)
    expires = int(datetime.now().timestamp()) + (int(expiration_time) * 60)
    encoding.update({"exp": expires})
    return jwt.encode(encoding, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[str]:
    """
    Verify a JWT and return its subject.

    Parameters
    ----------
    token : str
        Encoded JWT string from the `token` cookie.

    Returns
    ----------
    str | None
        The `sub` claim (user id) if the token is valid, otherwise None.

    Notes
    ----------
    - On any JWTError (invalid signature, expired, malformed), returns None.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload.get("sub")
    except JWTError as e:
        logger.warning(f"Token rejected: {e}")
        return None


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})
