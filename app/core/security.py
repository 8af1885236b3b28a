"""
Security helpers
Password hashing and JWT access tokens
"""
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings

# pbkdf2_sha256 first; bcrypt hashes from older accounts still verify
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def issue_token(employee_id: str, role: str, expires_minutes: Optional[int] = None) -> dict:
    """Signed bearer token for an employee, in the OAuth2 token response shape"""
    minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    claims = {
        "sub": employee_id,
        "role": role,
        "exp": datetime.utcnow() + timedelta(minutes=minutes),
    }
    return {
        "access_token": jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM),
        "token_type": "bearer",
        "expires_in": minutes * 60,
    }


def read_token_subject(token: str) -> Optional[str]:
    """employee_id carried by a valid token, or None if it is invalid or expired"""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    return claims.get("sub")
