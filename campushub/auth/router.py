import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..models.models import User, Role
from ..schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    MeResponse,
)
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
)
from ..logging import structlog


router = APIRouter(prefix="/auth", tags=["auth"])


def _get_or_create_role(db: Session, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if not role:
        role = Role(name=name)
        db.add(role)
        db.flush()
    return role


def _issue_tokens(user: User) -> TokenResponse:
    roles = [r.name for r in user.roles]
    return TokenResponse(
        access_token=create_access_token(str(user.id), roles),
        refresh_token=create_refresh_token(str(user.id)),
    )


@router.post("/register", response_model=TokenResponse)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    if payload.institution_id and db.query(User).filter(User.institution_id == payload.institution_id).first():
        raise HTTPException(status_code=400, detail="Institution id already registered")

    user = User(
        email=email,
        full_name=payload.full_name.strip(),
        institution_id=payload.institution_id,
        department=payload.department,
        password_hash=get_password_hash(payload.password),
    )
    # Self-registration always yields the default role; elevated roles are assigned by seed/admin
    user.roles.append(_get_or_create_role(db, settings.default_role))
    db.add(user)
    db.commit()
    db.refresh(user)
    structlog.get_logger().info("user_registered", user_id=str(user.id))
    return _issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    ident = payload.identifier.strip()
    user: Optional[User] = (
        db.query(User)
        .filter(or_(User.email == ident.lower(), User.institution_id == ident.upper()))
        .first()
    )
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user.last_login_at = datetime.utcnow()
    db.commit()
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    data = decode_token(payload.refresh_token)
    if data.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    try:
        user_uuid = uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid subject")
    user = db.query(User).filter(User.id == user_uuid).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    return _issue_tokens(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        institution_id=user.institution_id,
        department=user.department,
        roles=[r.name for r in user.roles],
    )
