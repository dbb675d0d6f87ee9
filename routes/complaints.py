import logging
from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import FileResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models import Complaint, User
from rate_limiter import limiter
from schemas import (
    ComplaintEnvelope,
    ComplaintListEnvelope,
    ComplaintOut,
    StatusOverview,
    StatusOverviewEnvelope,
)
from services import storage
from services.workflow import COMPLAINT_PRIORITIES, parse_location

router = APIRouter(prefix="/api/complaints", tags=["Complaints"])
logger = logging.getLogger(__name__)

TITLE_MAX = 100
DESCRIPTION_MAX = 1000


def get_complaint_or_404(db: Session, complaint_id: int) -> Complaint:
    complaint = db.query(Complaint).filter(Complaint.id == complaint_id).first()
    if not complaint:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Complaint not found"
        )
    return complaint


def status_overview(db: Session, user_id: Optional[int] = None) -> StatusOverview:
    """Citizen-facing buckets: received and assigned count as pending."""
    query = db.query(Complaint.status, func.count(Complaint.id))
    if user_id is not None:
        query = query.filter(Complaint.user_id == user_id)
    counts = Counter(dict(query.group_by(Complaint.status).all()))

    return StatusOverview(
        total_issues=sum(counts.values()),
        pending=counts["received"] + counts["assigned"],
        in_progress=counts["in_review"],
        resolved=counts["resolved"],
    )


def _tag_uploaded_photos(complaint_id: int, user_id: int, title: str, photos: List[str]):
    storage.tag_photos(
        photos,
        {
            "complaintId": str(complaint_id),
            "userId": str(user_id),
            "title": title,
            "uploadTime": datetime.now(timezone.utc).isoformat(),
        },
    )


@router.get("", response_model=ComplaintListEnvelope)
def list_complaints(
    status: Optional[str] = Query(default=None),
    priority: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Complaint)
    if status:
        query = query.filter(Complaint.status == status)
    if priority:
        query = query.filter(Complaint.priority == priority)

    complaints = query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()
    return ComplaintListEnvelope(count=len(complaints), complaints=complaints)


@router.get("/user", response_model=ComplaintListEnvelope)
def list_my_complaints(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    complaints = (
        db.query(Complaint)
        .filter(Complaint.user_id == current_user.id)
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .all()
    )
    return ComplaintListEnvelope(count=len(complaints), complaints=complaints)


@router.get("/stats/overview", response_model=StatusOverviewEnvelope)
def my_complaint_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return StatusOverviewEnvelope(stats=status_overview(db, current_user.id))


@router.get("/stats/all", response_model=StatusOverviewEnvelope)
def all_complaint_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return StatusOverviewEnvelope(stats=status_overview(db))


@router.get("/uploads/{filename}")
def serve_upload(filename: str):
    path = storage.local_photo_path(filename)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="File not found"
        )
    return FileResponse(path)


@router.get("/{complaint_id}", response_model=ComplaintEnvelope)
def get_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ComplaintEnvelope(complaint=get_complaint_or_404(db, complaint_id))


@router.post("", response_model=ComplaintEnvelope, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_complaint(
    request: Request,
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    address: Optional[str] = Form(default=None),
    priority: Optional[str] = Form(default=None),
    location_coords: Optional[str] = Form(default=None),
    photos: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    title = (title or "").strip()
    description = (description or "").strip()
    address = (address or "").strip()
    if not title or not description or not address:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide title, description, and address",
        )
    if len(title) > TITLE_MAX:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Title cannot be more than {TITLE_MAX} characters",
        )
    if len(description) > DESCRIPTION_MAX:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Description cannot be more than {DESCRIPTION_MAX} characters",
        )

    priority = priority or "medium"
    if priority not in COMPLAINT_PRIORITIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid priority value"
        )

    # All photos are checked before any of them is written.
    photo_refs = storage.save_photos(storage.read_photos(photos), current_user.id)

    complaint = Complaint(
        user_id=current_user.id,
        title=title,
        description=description,
        address=address,
        priority=priority,
        location_coords=parse_location(location_coords),
        upvotes=0,
        downvotes=0,
        photo=photo_refs,
    )
    db.add(complaint)
    db.commit()
    db.refresh(complaint)
    logger.info(
        "Complaint %s created by user %s with %s photo(s)",
        complaint.id,
        current_user.id,
        len(photo_refs),
    )

    if photo_refs:
        background_tasks.add_task(
            _tag_uploaded_photos, complaint.id, current_user.id, title, photo_refs
        )

    return ComplaintEnvelope(
        message="Complaint created successfully",
        complaint=ComplaintOut.model_validate(complaint),
    )
