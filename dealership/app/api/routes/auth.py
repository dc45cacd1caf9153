from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger
from sqlalchemy.orm import Session

from dealership.app.api.deps import get_current_user
from dealership.app.db import models
from dealership.app.db.session import get_session
from dealership.app.schemas import Token, UserRead
from dealership.app.services.security import authenticate, create_access_token

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_session),
):
    user = authenticate(db, form_data.username, form_data.password)
    if user is None:
        logger.warning("Failed login for {}", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    logger.info("User {} logged in", user.email)
    return Token(access_token=create_access_token(user.id, admin=user.is_admin))


@router.get("/me", response_model=UserRead)
async def me(current_user: models.User = Depends(get_current_user)):
    return current_user
