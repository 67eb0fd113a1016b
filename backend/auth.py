"""
Module: auth.py
Description: Password and JWT authentication for MoneyWise.

Provides:
    - bcrypt password hashing
    - HS256 access tokens carrying the user id in the "sub" claim
    - get_current_user dependency for FastAPI
    - Shared-secret check for the reminder cron endpoint

Usage:
    @app.get("/protected")
    async def protected_route(user_id: str = Depends(get_current_user)):
        ...

Author: MoneyWise Team
"""

import os
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from dotenv import load_dotenv

from services.observability import logger

load_dotenv()


# =============================================================================
# Configuration
# =============================================================================

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(days=1)

CRON_SECRET = os.getenv("CRON_SECRET", "your-cron-secret-key")


class InvalidToken(Exception):
    """Token is missing, malformed, expired or has no user id."""


security = HTTPBearer(auto_error=False)


# =============================================================================
# Passwords
# =============================================================================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


# =============================================================================
# Tokens
# =============================================================================

def create_access_token(user_id: str, expires_delta: timedelta = ACCESS_TOKEN_TTL) -> str:
    """Issue a signed token for user_id."""
    payload = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify a token and return {"user_id": ...}.

    Raises:
        InvalidToken: If the token cannot be trusted.
    """
    if not token:
        raise InvalidToken("Missing token")

    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise InvalidToken("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidToken(f"Invalid token: {e}") from e

    user_id = claims.get("sub")
    if not user_id:
        raise InvalidToken("Invalid token: missing user ID")
    return {"user_id": user_id}


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    FastAPI dependency returning the authenticated user id.

    Raises:
        HTTPException: 401 if not authenticated or token invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return verify_token(credentials.credentials)["user_id"]
    except InvalidToken as e:
        logger.warning("Rejected token", reason=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token. Please sign in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> None:
    """FastAPI dependency guarding scheduled jobs with the shared cron secret."""
    if not credentials or not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), CRON_SECRET.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
