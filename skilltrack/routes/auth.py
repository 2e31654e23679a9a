from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request

from skilltrack.config import settings
from skilltrack.db import store
from skilltrack.db.database import get_db

router = APIRouter(prefix="/api/auth", tags=["auth"])

JWT_ALGORITHM = "HS256"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def create_token(user_id: int, email: str) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "iat": issued,
        "exp": issued + timedelta(hours=settings.jwt_expiry_hours),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")


def _bearer_token(request: Request) -> str:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Not authenticated")
    return token.strip()


async def get_current_user(request: Request, db) -> dict:
    """Resolve the Bearer token to a user row; every failure is a 401."""
    claims = decode_token(_bearer_token(request))
    subject = claims.get("sub", "")
    if not str(subject).isdigit():
        raise _unauthorized("Invalid token")

    user = await store.get_user(db, int(subject))
    if not user:
        raise _unauthorized("User not found")
    return user


@router.get("/me")
async def me(request: Request, db=Depends(get_db)):
    return await get_current_user(request, db)
