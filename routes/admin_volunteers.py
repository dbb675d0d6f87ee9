import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    HTTPException,
    Query,
    Request,
    status,
)
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_admin, get_current_volunteer
from models import Admin, Volunteer
from rate_limiter import limiter
from schemas import (
    APIMessage,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    VolunteerAuthResponse,
    VolunteerBrief,
    VolunteerEnvelope,
    VolunteerListEnvelope,
    VolunteerOut,
    VolunteerRegister,
)
from security import (
    ROLE_VOLUNTEER,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from services import notifications, password_reset, workflow

router = APIRouter(prefix="/api/admin/volunteers", tags=["Volunteers"])
logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(minutes=10)


def get_volunteer_or_404(db: Session, volunteer_id: int) -> Volunteer:
    volunteer = db.query(Volunteer).filter(Volunteer.id == volunteer_id).first()
    if not volunteer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Volunteer not found"
        )
    return volunteer


def _ensure_email_free(db: Session, email: str):
    if db.query(Volunteer).filter(Volunteer.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Volunteer with this email already exists",
        )


def _new_volunteer(payload: VolunteerRegister, **fields) -> Volunteer:
    return Volunteer(
        name=payload.name,
        email=payload.email.lower(),
        password_hash=hash_password(payload.password),
        phone=payload.phone,
        address=payload.address,
        **fields,
    )


@router.post(
    "/register", response_model=VolunteerEnvelope, status_code=status.HTTP_201_CREATED
)
@limiter.limit("5/minute")
def register(request: Request, payload: VolunteerRegister, db: Session = Depends(get_db)):
    _ensure_email_free(db, payload.email.lower())

    volunteer = _new_volunteer(payload, status="pending")
    db.add(volunteer)
    db.commit()
    db.refresh(volunteer)
    logger.info("Volunteer %s registered, awaiting approval", volunteer.id)
    return VolunteerEnvelope(
        message="Volunteer registration successful. Waiting for admin approval.",
        volunteer=VolunteerOut.model_validate(volunteer),
    )


@router.post("/login", response_model=VolunteerAuthResponse)
@limiter.limit("10/minute")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    volunteer = (
        db.query(Volunteer).filter(Volunteer.email == payload.email.lower()).first()
    )
    if not volunteer or not verify_password(payload.password, volunteer.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    if volunteer.status == "pending":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your account is pending approval by admin",
        )
    if volunteer.status == "blocked":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your account has been blocked",
        )

    return VolunteerAuthResponse(
        token=create_access_token(volunteer.id, ROLE_VOLUNTEER),
        refresh_token=create_refresh_token(volunteer.id, ROLE_VOLUNTEER),
        volunteer=VolunteerBrief.model_validate(volunteer),
    )


@router.get("/me", response_model=VolunteerEnvelope)
def me(current_volunteer: Volunteer = Depends(get_current_volunteer)):
    return VolunteerEnvelope(volunteer=VolunteerOut.model_validate(current_volunteer))


@router.post("/forgot-password", response_model=APIMessage)
@limiter.limit("5/minute")
def forgot_password(
    request: Request, payload: ForgotPasswordRequest, db: Session = Depends(get_db)
):
    volunteer = (
        db.query(Volunteer).filter(Volunteer.email == payload.email.lower()).first()
    )
    if not volunteer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No volunteer found with this email",
        )

    password_reset.start_reset(
        db,
        volunteer,
        f"{notifications.ADMIN_APP_URL}/volunteer/reset-password",
        RESET_TOKEN_TTL,
        "10 minutes",
        "volunteer",
    )
    return APIMessage(message="Password reset email sent")


@router.put("/reset-password/{token}", response_model=APIMessage)
def reset_password(
    token: str, payload: ResetPasswordRequest, db: Session = Depends(get_db)
):
    password_reset.complete_reset(db, Volunteer, token, payload.password)
    return APIMessage(message="Password reset successful")


@router.get("", response_model=VolunteerListEnvelope)
def list_volunteers(
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    query = db.query(Volunteer)
    if status:
        query = query.filter(Volunteer.status == status)
    volunteers = query.order_by(Volunteer.created_at.desc(), Volunteer.id.desc()).all()
    return VolunteerListEnvelope(count=len(volunteers), volunteers=volunteers)


@router.post("", response_model=VolunteerEnvelope, status_code=status.HTTP_201_CREATED)
def create_volunteer(
    payload: VolunteerRegister,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    _ensure_email_free(db, payload.email.lower())

    volunteer = _new_volunteer(
        payload,
        status="approved",
        approved_by_id=current_admin.id,
        approved_at=datetime.now(timezone.utc),
    )
    db.add(volunteer)
    db.commit()
    db.refresh(volunteer)
    logger.info("Volunteer %s created by admin %s", volunteer.id, current_admin.id)
    return VolunteerEnvelope(
        message="Volunteer created successfully",
        volunteer=VolunteerOut.model_validate(volunteer),
    )


@router.put("/{volunteer_id}/approve", response_model=VolunteerEnvelope)
def approve_volunteer(
    volunteer_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    volunteer = workflow.approve_volunteer(
        db, get_volunteer_or_404(db, volunteer_id), current_admin
    )
    background_tasks.add_task(
        notifications.deliver_with_retry,
        notifications.approval_email(volunteer.name, volunteer.email),
    )
    return VolunteerEnvelope(
        message="Volunteer approved successfully",
        volunteer=VolunteerOut.model_validate(volunteer),
    )


@router.put("/{volunteer_id}/block", response_model=VolunteerEnvelope)
def toggle_block(
    volunteer_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    volunteer = workflow.toggle_volunteer_block(
        db, get_volunteer_or_404(db, volunteer_id)
    )
    state = "blocked" if volunteer.status == "blocked" else "unblocked"
    return VolunteerEnvelope(
        message=f"Volunteer {state} successfully",
        volunteer=VolunteerOut.model_validate(volunteer),
    )


@router.delete("/{volunteer_id}", response_model=APIMessage)
def delete_volunteer(
    volunteer_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    volunteer = get_volunteer_or_404(db, volunteer_id)
    # Complaints keep assigned_to pointing at the removed volunteer.
    db.delete(volunteer)
    db.commit()
    logger.info("Volunteer %s deleted by admin %s", volunteer_id, current_admin.id)
    return APIMessage(message="Volunteer deleted successfully")
