import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models import Admin, User, Volunteer
from rate_limiter import limiter
from schemas import (
    APIMessage,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RefreshTokenRequest,
    ResetPasswordRequest,
    TokenPair,
    UserEnvelope,
    UserOut,
    UserRegister,
)
from security import (
    ROLE_ADMIN,
    ROLE_CITIZEN,
    ROLE_VOLUNTEER,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from services import notifications, password_reset

router = APIRouter(prefix="/api/auth", tags=["Auth"])
logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(user.id, ROLE_CITIZEN),
        refresh_token=create_refresh_token(user.id, ROLE_CITIZEN),
        user=UserOut.model_validate(user),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, payload: UserRegister, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email",
        )

    if payload.username and (
        db.query(User).filter(User.username == payload.username).first()
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username is already taken",
        )

    user = User(
        name=payload.name,
        username=payload.username or email,
        email=email,
        password_hash=hash_password(payload.password),
        state=payload.state,
        city=payload.city,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Citizen %s registered", user.id)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    if user.is_blocked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been blocked. Please contact administrator.",
        )

    if not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    return _auth_response(user)


@router.post("/refresh", response_model=TokenPair)
@limiter.limit("20/minute")
def refresh_token(
    request: Request, payload: RefreshTokenRequest, db: Session = Depends(get_db)
):
    claims = decode_token(payload.refresh_token)
    if claims.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token"
        )

    subject_id = claims.get("sub")
    role = claims.get("role")
    if not subject_id or not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token payload",
        )

    if role == ROLE_CITIZEN:
        subject = db.get(User, int(subject_id))
        allowed = subject is not None and not subject.is_blocked
    elif role == ROLE_VOLUNTEER:
        subject = db.get(Volunteer, int(subject_id))
        allowed = subject is not None and subject.status == "approved"
    elif role == ROLE_ADMIN:
        subject = db.get(Admin, int(subject_id))
        allowed = subject is not None and subject.is_active
    else:
        allowed = False

    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token user",
        )

    return TokenPair(
        token=create_access_token(subject.id, role),
        refresh_token=create_refresh_token(subject.id, role),
    )


@router.get("/me", response_model=UserEnvelope)
def me(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserOut.model_validate(current_user))


@router.put("/profile", response_model=UserEnvelope)
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return UserEnvelope(
        message="Profile updated successfully",
        user=UserOut.model_validate(current_user),
    )


@router.post("/forgot-password", response_model=APIMessage)
@limiter.limit("5/minute")
def forgot_password(
    request: Request, payload: ForgotPasswordRequest, db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )

    password_reset.start_reset(
        db,
        user,
        f"{notifications.CITIZEN_APP_URL}/reset-password",
        RESET_TOKEN_TTL,
        "1 hour",
        "citizen",
    )
    return APIMessage(message="Password reset email sent")


@router.post("/reset-password/{token}", response_model=APIMessage)
def reset_password(
    token: str, payload: ResetPasswordRequest, db: Session = Depends(get_db)
):
    password_reset.complete_reset(db, User, token, payload.password)
    return APIMessage(message="Password reset successful")
