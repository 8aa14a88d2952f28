"""
Auth API routes — signup, login, current user.

Route prefix: /api/v1/auth
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from auth.jwt import create_token
from auth.password import hash_password, verify_password
from connectors.credential_store import get_user_credentials
from database.models import User
from utils.exceptions import Unauthenticated

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# ── Request / response schemas ─────────────────────────────────────────


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=4, max_length=128)


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    user_id: str
    display_name: str
    email: str
    token: str


class MeResponse(BaseModel):
    user_id: str
    display_name: str
    email: str
    connected_providers: List[str]


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse)
async def register(
    req: RegisterRequest,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Sign up a new user."""
    result = await session.execute(select(User).where(User.email == req.email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        user_id=uuid.uuid4(),
        email=req.email,
        display_name=req.name,
        password_hash=hash_password(req.password),
    )
    session.add(user)
    await session.flush()

    logger.info("Registered user %s (%s)", req.email, user.user_id)
    return {
        "user_id": str(user.user_id),
        "display_name": user.display_name,
        "email": user.email,
        "token": create_token(str(user.user_id)),
    }


@router.post("/login", response_model=AuthResponse)
async def login(
    req: LoginRequest,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Login with email + password."""
    result = await session.execute(select(User).where(User.email == req.email))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(req.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")

    logger.info("Login: %s (%s)", user.email, user.user_id)
    return {
        "user_id": str(user.user_id),
        "display_name": user.display_name or "",
        "email": user.email,
        "token": create_token(str(user.user_id)),
    }


@router.get("/me", response_model=MeResponse)
async def me(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """The current user plus which providers they have connected."""
    user = await session.get(User, uuid.UUID(user_id))
    if user is None:
        raise Unauthenticated("Unknown user")
    credentials = await get_user_credentials(user_id, db_session=session)
    return {
        "user_id": str(user.user_id),
        "display_name": user.display_name or "",
        "email": user.email,
        "connected_providers": list(credentials),
    }
