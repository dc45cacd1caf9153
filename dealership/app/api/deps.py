from __future__ import annotations

from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from dealership.app.db import models
from dealership.app.db.session import get_session
from dealership.app.services.blob_store import BlobStore, build_blob_store
from dealership.app.services.mailer import Mailer
from dealership.app.services.places_client import PlacesClient
from dealership.app.services.record_store import RecordStore
from dealership.app.services.reviews import FunctionsClient
from dealership.app.services.security import InvalidTokenError, decode_access_token
from dealership.app.services.vehicle_editor import VehicleEditor

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_record_store() -> RecordStore:
    return RecordStore()


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    return build_blob_store()


def get_editor(
    store: RecordStore = Depends(get_record_store),
    blob_store: BlobStore = Depends(get_blob_store),
) -> VehicleEditor:
    return VehicleEditor(store, blob_store)


async def get_places_client() -> AsyncIterator[PlacesClient]:
    client = PlacesClient()
    try:
        yield client
    finally:
        await client.aclose()


async def get_functions_client() -> AsyncIterator[FunctionsClient]:
    client = FunctionsClient()
    try:
        yield client
    finally:
        await client.aclose()


async def get_mailer() -> AsyncIterator[Mailer]:
    mailer = Mailer()
    try:
        yield mailer
    finally:
        await mailer.aclose()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    try:
        payload = decode_access_token(token)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = payload.get("sub")
    user = db.get(models.User, user_id) if user_id else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
