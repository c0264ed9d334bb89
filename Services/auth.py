# Services/auth.py
"""Bearer-token auth against the hosted auth service, plus role guards."""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import jwt
from jose.exceptions import JWTError
from sqlalchemy.orm import Session

from Models import Profile, VendorApplication
from database import get_db

logger = logging.getLogger(__name__)


@dataclass
class Actor:
    """Who is calling: passed explicitly into every mutating handler."""
    id: str
    email: Optional[str]
    role: str
    vendor_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _jwt_secret() -> str:
    return (os.getenv("SUPABASE_JWT_SECRET") or "").strip()


def _jwt_audience() -> Optional[str]:
    aud = os.getenv("SUPABASE_JWT_AUD", "authenticated").strip()
    return aud or None


def _get_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def decode_token(token: str) -> dict:
    secret = _jwt_secret()
    if not secret:
        raise JWTError("SUPABASE_JWT_SECRET is not configured")
    audience = _jwt_audience()
    options = {"verify_aud": audience is not None}
    return jwt.decode(token, secret, algorithms=["HS256"], audience=audience, options=options)


def get_current_actor(request: Request, db: Session = Depends(get_db)) -> Actor:
    token = _get_bearer_token(request)
    if not token:
        logger.warning(f"auth_missing_token path={request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    try:
        claims = decode_token(token)
    except JWTError as e:
        logger.warning(f"auth_invalid_token path={request.url.path} error={e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token"
        )

    profile = db.query(Profile).filter(Profile.id == claims.get("sub")).first()
    if not profile:
        logger.warning(f"auth_unknown_profile sub={claims.get('sub')}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized"
        )

    return Actor(id=profile.id, email=profile.email, role=profile.role)


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        logger.warning(f"auth_forbidden actor={actor.id} role={actor.role} required=admin")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized"
        )
    return actor


def require_vendor(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
) -> Actor:
    if actor.role != "vendor":
        logger.warning(f"auth_forbidden actor={actor.id} role={actor.role} required=vendor")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized"
        )

    application = db.query(VendorApplication).filter(
        VendorApplication.user_id == actor.id,
        VendorApplication.status == "approved"
    ).first()
    if not application:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Vendor application not found or not approved"
        )

    actor.vendor_id = application.id
    return actor
