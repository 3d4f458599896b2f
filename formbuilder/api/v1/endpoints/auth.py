import uuid

import jwt
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from formbuilder.core.auth import get_current_user
from formbuilder.core.config import settings
from formbuilder.core.database import get_db
from formbuilder.models.user import User
from formbuilder.schemas.auth import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenResponse,
    UserResponse,
)
from formbuilder.services.auth import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    PasswordResetError,
    authenticate,
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    create_user,
    decode_refresh_token,
    get_user_by_email,
    get_user_by_id,
    reset_password,
)
from formbuilder.services.email import reset_url_for, send_password_reset_email

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "Se o email estiver cadastrado, você receberá um link de recuperação"


def _set_auth_cookies(response: Response, user: User) -> TokenResponse:
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=access_token,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 86400,
        path="/",
    )
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/signup", response_model=UserResponse, status_code=201)
def signup(body: SignupRequest, response: Response, db: Session = Depends(get_db)):
    if get_user_by_email(db, body.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )
    user = create_user(db, email=body.email, password=body.password, name=body.name)
    _set_auth_cookies(response, user)
    return user


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = authenticate(db, body.email, body.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    return _set_auth_cookies(response, user)


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    db: Session = Depends(get_db),
):
    token = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing",
        )

    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired refresh token",
    )
    try:
        payload = decode_refresh_token(token)
    except jwt.PyJWTError:
        raise invalid
    if payload.get("type") != "refresh":
        raise invalid

    try:
        user = get_user_by_id(db, uuid.UUID(str(payload.get("sub"))))
    except ValueError:
        raise invalid
    if user is None:
        raise invalid
    return _set_auth_cookies(response, user)


@router.post("/logout", status_code=204)
def logout(response: Response):
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    user = get_user_by_email(db, body.email)
    if user is None:
        return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE)

    reset_token = create_password_reset_token(db, user)
    background_tasks.add_task(send_password_reset_email, user.email, reset_token.token)

    if settings.DEBUG:
        return ForgotPasswordResponse(
            message=FORGOT_PASSWORD_MESSAGE,
            token=reset_token.token,
            reset_url=reset_url_for(reset_token.token),
        )
    return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password_endpoint(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        reset_password(db, body.token, body.password)
    except PasswordResetError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return MessageResponse(message="Senha alterada com sucesso")
