from datetime import datetime, timedelta
from typing import Optional
import os
from jose import JWTError, jwt
from dotenv import load_dotenv

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7))

REQUIRED_CLAIMS = ("user_id", "org_id")


def token_claims_for(user) -> dict:
    """Claims identifying a user and the organization the token was issued in."""
    return {
        "user_id": str(user.id),
        "org_id": str(user.org_id),
        "role": user.role.value,
    }


def _sign(claims: dict, token_type: str, lifetime: timedelta) -> str:
    if not SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not set in the .env file")
    missing = [name for name in REQUIRED_CLAIMS if not claims.get(name)]
    if missing:
        raise ValueError(f"Token claims missing: {', '.join(missing)}")

    payload = dict(claims, type=token_type, exp=datetime.utcnow() + lifetime)
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


# ---------------------------
# Issue tokens
# ---------------------------
def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _sign(claims, "access", expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _sign(claims, "refresh", expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


# ---------------------------
# Verify token
# ---------------------------
def verify_token(token: str, expected_type: str = "access") -> dict:
    """
    Decode a token and return its claims.

    Raises:
        JWTError: when the signature or expiry is invalid, the token is of
        another type, or a user/organization claim is missing.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        raise JWTError("Invalid or expired token") from e

    if payload.get("type") != expected_type:
        raise JWTError(f"Invalid token type. Expected '{expected_type}'.")
    if any(not payload.get(name) for name in REQUIRED_CLAIMS):
        raise JWTError("Token is missing user or organization claims")
    return payload
