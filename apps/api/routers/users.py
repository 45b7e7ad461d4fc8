"""
User router: registration, login/logout, token refresh and profile management.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.user import User
from routers.auth_scope import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, get_current_user
from routers.envelope import api_response
from routers.rate_limit import rate_limit
from routers.schemas import serialize_user, serialize_video
from services import session_token
from services.errors import Unauthenticated
from services.media_gateway import (
    IMAGE_EXTENSIONS,
    IMAGE_MIME_PREFIXES,
    MediaGateway,
    discard_local,
    get_media_gateway,
    stage_upload,
)
from services.users import (
    authenticate,
    change_password,
    get_channel_profile,
    get_watch_history,
    register_user,
    replace_image,
    update_account,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class UpdateAccountRequest(BaseModel):
    full_name: str
    email: str


def _set_auth_cookies(response: Response, pair: session_token.TokenPair) -> None:
    options = {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": "lax"}
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        pair.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **options,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        pair.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        **options,
    )


def _clear_auth_cookies(response: Response) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.COOKIE_SECURE, samesite="lax")


async def _stage_image(file: UploadFile, label: str) -> Path:
    return await stage_upload(
        file,
        allowed_prefixes=IMAGE_MIME_PREFIXES,
        allowed_extensions=IMAGE_EXTENSIONS,
        max_bytes=settings.MAX_IMAGE_UPLOAD_BYTES,
        label=label,
    )


@router.post("/register", status_code=201)
async def register(
    full_name: str = Form(...),
    email: str = Form(...),
    username: str = Form(...),
    password: str = Form(...),
    avatar: UploadFile = File(...),
    cover_image: Optional[UploadFile] = File(None),
    _rate_limit: None = Depends(rate_limit("register", limit=20, window_seconds=3600)),
    db: AsyncSession = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Create an account; avatar is required, cover image optional."""
    avatar_path: Optional[Path] = None
    cover_path: Optional[Path] = None
    try:
        avatar_path = await _stage_image(avatar, "Avatar")
        if cover_image is not None and cover_image.filename:
            cover_path = await _stage_image(cover_image, "Cover image")
        user = await register_user(
            db,
            gateway,
            full_name=full_name,
            email=email,
            username=username,
            password=password,
            avatar_path=avatar_path,
            cover_image_path=cover_path,
        )
    finally:
        discard_local(avatar_path, cover_path)

    return api_response(serialize_user(user), "User registered successfully", 201)


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    _rate_limit: None = Depends(rate_limit("login", limit=30, window_seconds=900)),
    db: AsyncSession = Depends(get_db),
):
    """Check credentials, issue a token pair and set both cookies."""
    user = await authenticate(db, username=request.username, email=request.email, password=request.password)
    pair = await session_token.issue_token_pair(db, user.id)
    _set_auth_cookies(response, pair)
    logger.info("User %s logged in", user.id)
    return api_response(
        {
            "user": serialize_user(user),
            "access_token": pair.access_token,
            "refresh_token": pair.refresh_token,
        },
        "User logged in successfully",
    )


@router.post("/logout")
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the stored refresh token and clear both cookies."""
    await session_token.revoke(db, user.id)
    _clear_auth_cookies(response)
    logger.info("User %s logged out", user.id)
    return api_response({}, "User logged out")


@router.post("/refresh-token")
async def refresh_access_token(
    http_request: Request,
    response: Response,
    request: Optional[RefreshTokenRequest] = None,
    _rate_limit: None = Depends(rate_limit("refresh", limit=120, window_seconds=900)),
    db: AsyncSession = Depends(get_db),
):
    """Rotate the token pair using the cookie or body refresh token."""
    incoming = (http_request.cookies.get(REFRESH_TOKEN_COOKIE) or "").strip()
    if not incoming and request is not None:
        incoming = (request.refresh_token or "").strip()
    if not incoming:
        raise Unauthenticated("Refresh token is required")

    pair = await session_token.rotate_from_refresh_token(db, incoming)
    _set_auth_cookies(response, pair)
    return api_response(
        {"access_token": pair.access_token, "refresh_token": pair.refresh_token},
        "Access token refreshed",
    )


@router.post("/change-password")
async def change_current_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await change_password(
        db,
        user,
        old_password=request.old_password or "",
        new_password=request.new_password or "",
        confirm_password=request.confirm_password or "",
    )
    return api_response({}, "Password changed successfully")


@router.get("/current-user")
async def get_current_user_profile(user: User = Depends(get_current_user)):
    return api_response(serialize_user(user), "Current user fetched successfully")


@router.patch("/update-account")
async def update_account_details(
    request: UpdateAccountRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await update_account(db, user, full_name=request.full_name, email=request.email)
    return api_response(serialize_user(updated), "Account details updated successfully")


@router.patch("/avatar")
async def update_user_avatar(
    avatar: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    path = await _stage_image(avatar, "Avatar")
    try:
        updated = await replace_image(db, gateway, user, path, "avatar")
    finally:
        discard_local(path)
    return api_response(serialize_user(updated), "Avatar updated successfully")


@router.patch("/cover-image")
async def update_user_cover_image(
    cover_image: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    path = await _stage_image(cover_image, "Cover image")
    try:
        updated = await replace_image(db, gateway, user, path, "cover_image")
    finally:
        discard_local(path)
    return api_response(serialize_user(updated), "Cover image updated successfully")


@router.get("/c/{username}")
async def get_user_channel_profile(
    username: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await get_channel_profile(db, username, user.id)
    return api_response(profile, "User channel fetched successfully")


@router.get("/history")
async def get_user_watch_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    videos = await get_watch_history(db, user.id)
    return api_response([serialize_video(video) for video in videos], "Watch history fetched successfully")
