# fieldops/routers/users_routes.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlmodel import Session, select

from fieldops.db import get_session
from fieldops.models import User
from fieldops.schemas import UserCreate, UserPublic, UserRole
from fieldops.auth import get_current_user, get_optional_user, hash_password

router = APIRouter(
    tags=["users"],
)

@router.get("/me", response_model=UserPublic)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
    current_user: Optional[User] = Depends(get_optional_user),
):
    # 1) Only admins add users, except the very first (bootstrap) admin
    user_count = session.exec(select(func.count()).select_from(User)).one()
    if user_count == 0:
        if user.role != UserRole.admin:
            raise HTTPException(status_code=422, detail="The first user must be an admin")
    elif current_user is None or current_user.role != UserRole.admin.value:
        raise HTTPException(status_code=403, detail="Forbidden")

    # 2) Check if email already exists
    existing = session.exec(
        select(User).where(User.email == user.email)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    if user.role == UserRole.service_person and user.zone_id is None:
        raise HTTPException(status_code=422, detail="Service persons must be assigned to a zone")

    # 3) Create user in DB
    db_user = User(
        email=user.email,
        password_hash=hash_password(user.password),
        role=user.role.value,
        zone_id=user.zone_id,
        skills=list(user.skills),
    )

    session.add(db_user)
    session.commit()
    session.refresh(db_user)  # fills db_user.id

    return db_user
