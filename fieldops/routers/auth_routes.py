# fieldops/routers/auth_routes.py

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from fieldops.db import get_session
from fieldops.models import User
from fieldops.schemas import Token
from fieldops.auth import verify_password, create_access_token

logger = structlog.get_logger("fieldops.auth")

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    email = form_data.username
    password = form_data.password

    user = session.exec(
        select(User).where(User.email == email)
    ).first()

    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("login_failed", reason="invalid_credentials")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": user.email, "role": user.role})
    return {"access_token": token, "token_type": "bearer"}
