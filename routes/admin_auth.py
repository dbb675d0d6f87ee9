import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_admin
from models import Admin
from rate_limiter import limiter
from schemas import (
    AdminAuthResponse,
    AdminCreate,
    AdminEnvelope,
    AdminListEnvelope,
    AdminOut,
    APIMessage,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
)
from security import (
    ROLE_ADMIN,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from services import notifications, password_reset

router = APIRouter(prefix="/api/admin/auth", tags=["Admin Auth"])
logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(minutes=10)


def get_admin_or_404(db: Session, admin_id: int) -> Admin:
    admin = db.query(Admin).filter(Admin.id == admin_id).first()
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Admin not found"
        )
    return admin


@router.post("/login", response_model=AdminAuthResponse)
@limiter.limit("10/minute")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.email == payload.email.lower()).first()
    if not admin or not verify_password(payload.password, admin.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    if not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin account is inactive",
        )

    logger.info("Admin %s logged in", admin.id)
    return AdminAuthResponse(
        token=create_access_token(admin.id, ROLE_ADMIN),
        refresh_token=create_refresh_token(admin.id, ROLE_ADMIN),
        admin=AdminOut.model_validate(admin),
    )


@router.post("/register", response_model=AdminEnvelope, status_code=status.HTTP_201_CREATED)
def register_admin(
    payload: AdminCreate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    email = payload.email.lower()
    if db.query(Admin).filter(Admin.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admin with this email already exists",
        )

    admin = Admin(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        role="admin",
        is_active=True,
        created_by_id=current_admin.id,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin %s created by admin %s", admin.id, current_admin.id)
    return AdminEnvelope(
        message="Admin created successfully", admin=AdminOut.model_validate(admin)
    )


@router.get("/me", response_model=AdminEnvelope)
def me(current_admin: Admin = Depends(get_current_admin)):
    return AdminEnvelope(admin=AdminOut.model_validate(current_admin))


@router.post("/forgot-password", response_model=APIMessage)
@limiter.limit("5/minute")
def forgot_password(
    request: Request, payload: ForgotPasswordRequest, db: Session = Depends(get_db)
):
    admin = db.query(Admin).filter(Admin.email == payload.email.lower()).first()
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No admin found with this email",
        )

    password_reset.start_reset(
        db,
        admin,
        f"{notifications.ADMIN_APP_URL}/admin/reset-password",
        RESET_TOKEN_TTL,
        "10 minutes",
        "admin",
    )
    return APIMessage(message="Password reset email sent")


@router.put("/reset-password/{token}", response_model=APIMessage)
def reset_password(
    token: str, payload: ResetPasswordRequest, db: Session = Depends(get_db)
):
    password_reset.complete_reset(db, Admin, token, payload.password)
    return APIMessage(message="Password reset successful")


@router.get("/admins", response_model=AdminListEnvelope)
def list_admins(
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    admins = db.query(Admin).order_by(Admin.created_at.desc(), Admin.id.desc()).all()
    return AdminListEnvelope(count=len(admins), admins=admins)


@router.put("/{admin_id}/toggle-active", response_model=AdminEnvelope)
def toggle_active(
    admin_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    admin = get_admin_or_404(db, admin_id)
    if admin.role == "super_admin":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate super admin",
        )

    admin.is_active = not admin.is_active
    db.commit()
    db.refresh(admin)
    state = "activated" if admin.is_active else "deactivated"
    logger.info("Admin %s %s by admin %s", admin.id, state, current_admin.id)
    return AdminEnvelope(
        message=f"Admin {state} successfully", admin=AdminOut.model_validate(admin)
    )
