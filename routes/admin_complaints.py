import logging
from collections import Counter
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_admin
from models import Admin, Comment, Complaint, User, Volunteer
from routes.comments import comments_for
from routes.complaints import get_complaint_or_404
from schemas import (
    AdminDashboardEnvelope,
    AdminDashboardStats,
    APIMessage,
    AssignRequest,
    ComplaintDetailEnvelope,
    ComplaintEnvelope,
    ComplaintListEnvelope,
    ComplaintOut,
    ComplaintStatusCounts,
    PriorityCounts,
    StatusUpdate,
    VolunteerCounts,
)
from services import notifications, storage, workflow

router = APIRouter(prefix="/api/admin/complaints", tags=["Admin Complaints"])
logger = logging.getLogger(__name__)


def _counts(db: Session, column) -> Counter:
    return Counter(dict(db.query(column, func.count()).group_by(column).all()))


@router.get("", response_model=ComplaintListEnvelope)
def list_complaints(
    status: Optional[str] = Query(default=None),
    priority: Optional[str] = Query(default=None),
    assigned: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    query = db.query(Complaint)
    if status:
        query = query.filter(Complaint.status == status)
    if priority:
        query = query.filter(Complaint.priority == priority)
    if assigned == "true":
        query = query.filter(Complaint.assigned_to.isnot(None))
    elif assigned == "false":
        query = query.filter(Complaint.assigned_to.is_(None))

    complaints = query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()
    return ComplaintListEnvelope(count=len(complaints), complaints=complaints)


@router.get("/stats/dashboard", response_model=AdminDashboardEnvelope)
def dashboard_stats(
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    by_status = _counts(db, Complaint.status)
    by_priority = _counts(db, Complaint.priority)
    by_volunteer_status = _counts(db, Volunteer.status)

    return AdminDashboardEnvelope(
        stats=AdminDashboardStats(
            complaints=ComplaintStatusCounts(
                total=sum(by_status.values()),
                pending=by_status["received"],
                in_review=by_status["in_review"],
                assigned=by_status["assigned"],
                resolved=by_status["resolved"],
                rejected=by_status["rejected"],
            ),
            priority=PriorityCounts(
                urgent=by_priority["urgent"],
                high=by_priority["high"],
                medium=by_priority["medium"],
                low=by_priority["low"],
            ),
            users=db.query(func.count(User.id)).scalar() or 0,
            volunteers=VolunteerCounts(
                total=sum(by_volunteer_status.values()),
                pending=by_volunteer_status["pending"],
                approved=by_volunteer_status["approved"],
                blocked=by_volunteer_status["blocked"],
            ),
        )
    )


@router.get("/{complaint_id}", response_model=ComplaintDetailEnvelope)
def get_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    complaint = get_complaint_or_404(db, complaint_id)
    return ComplaintDetailEnvelope(
        complaint=complaint, comments=comments_for(db, complaint_id)
    )


@router.put("/{complaint_id}/status", response_model=ComplaintEnvelope)
def update_status(
    complaint_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    complaint = get_complaint_or_404(db, complaint_id)
    complaint = workflow.change_status(
        db, complaint, payload.status, workflow.ACTOR_ADMIN
    )
    return ComplaintEnvelope(
        message="Complaint status updated successfully",
        complaint=ComplaintOut.model_validate(complaint),
    )


@router.put("/{complaint_id}/assign", response_model=ComplaintEnvelope)
def assign_complaint(
    complaint_id: int,
    payload: AssignRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    if not payload.volunteer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide volunteer ID",
        )

    complaint = get_complaint_or_404(db, complaint_id)
    volunteer = db.query(Volunteer).filter(Volunteer.id == payload.volunteer_id).first()
    if not volunteer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Volunteer not found"
        )

    complaint = workflow.assign_complaint(db, complaint, volunteer)

    reported_on = complaint.created_at.strftime("%d %b %Y") if complaint.created_at else ""
    background_tasks.add_task(
        notifications.deliver_with_retry,
        notifications.assignment_email(
            volunteer.name,
            volunteer.email,
            complaint.title,
            complaint.description,
            complaint.address,
            complaint.priority,
            reported_on,
        ),
    )

    return ComplaintEnvelope(
        message="Complaint assigned to volunteer successfully",
        complaint=ComplaintOut.model_validate(complaint),
    )


@router.put("/{complaint_id}/unassign", response_model=ComplaintEnvelope)
def unassign_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    complaint = workflow.unassign_complaint(db, get_complaint_or_404(db, complaint_id))
    return ComplaintEnvelope(
        message="Complaint unassigned successfully",
        complaint=ComplaintOut.model_validate(complaint),
    )


@router.delete("/{complaint_id}", response_model=APIMessage)
def delete_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    complaint = get_complaint_or_404(db, complaint_id)
    photos = list(complaint.photo or [])
    workflow.delete_complaint(db, complaint)
    storage.discard_photos(photos)
    return APIMessage(message="Complaint and associated comments deleted successfully")


@router.delete("/{complaint_id}/comments/{comment_id}", response_model=APIMessage)
def delete_comment(
    complaint_id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    comment = (
        db.query(Comment)
        .filter(Comment.id == comment_id, Comment.complaint_id == complaint_id)
        .first()
    )
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found"
        )

    db.delete(comment)
    db.commit()
    logger.info("Comment %s removed by admin %s", comment_id, current_admin.id)
    return APIMessage(message="Comment deleted successfully")
