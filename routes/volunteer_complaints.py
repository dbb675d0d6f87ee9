from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_volunteer
from models import Complaint, Volunteer
from routes.comments import comments_for
from schemas import (
    ComplaintDetailEnvelope,
    ComplaintEnvelope,
    ComplaintListEnvelope,
    ComplaintOut,
    StatusUpdate,
    VolunteerDashboardEnvelope,
    VolunteerDashboardStats,
)
from services import workflow

router = APIRouter(prefix="/api/volunteer/complaints", tags=["Volunteer Complaints"])


def _assigned_query(db: Session, volunteer: Volunteer):
    return db.query(Complaint).filter(Complaint.assigned_to == volunteer.id)


def get_assigned_or_404(db: Session, volunteer: Volunteer, complaint_id: int) -> Complaint:
    complaint = (
        _assigned_query(db, volunteer).filter(Complaint.id == complaint_id).first()
    )
    if not complaint:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Complaint not found or not assigned to you",
        )
    return complaint


@router.get("", response_model=ComplaintListEnvelope)
def list_assigned(
    db: Session = Depends(get_db),
    current_volunteer: Volunteer = Depends(get_current_volunteer),
):
    complaints = (
        _assigned_query(db, current_volunteer)
        .order_by(Complaint.updated_at.desc(), Complaint.id.desc())
        .all()
    )
    return ComplaintListEnvelope(count=len(complaints), complaints=complaints)


@router.get("/stats/dashboard", response_model=VolunteerDashboardEnvelope)
def dashboard_stats(
    db: Session = Depends(get_db),
    current_volunteer: Volunteer = Depends(get_current_volunteer),
):
    counts = dict(
        db.query(Complaint.status, func.count(Complaint.id))
        .filter(Complaint.assigned_to == current_volunteer.id)
        .group_by(Complaint.status)
        .all()
    )
    return VolunteerDashboardEnvelope(
        stats=VolunteerDashboardStats(
            total=sum(counts.values()),
            assigned=counts.get("assigned", 0) + counts.get("in_review", 0),
            resolved=counts.get("resolved", 0),
        )
    )


@router.get("/{complaint_id}", response_model=ComplaintDetailEnvelope)
def get_assigned(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_volunteer: Volunteer = Depends(get_current_volunteer),
):
    complaint = get_assigned_or_404(db, current_volunteer, complaint_id)
    return ComplaintDetailEnvelope(
        complaint=complaint, comments=comments_for(db, complaint.id)
    )


@router.put("/{complaint_id}/status", response_model=ComplaintEnvelope)
def update_status(
    complaint_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    current_volunteer: Volunteer = Depends(get_current_volunteer),
):
    # Invalid targets are rejected before the assignment lookup.
    workflow.validate_status_change(workflow.ACTOR_VOLUNTEER, None, payload.status)
    complaint = get_assigned_or_404(db, current_volunteer, complaint_id)
    complaint = workflow.change_status(
        db, complaint, payload.status, workflow.ACTOR_VOLUNTEER
    )
    return ComplaintEnvelope(
        message="Complaint status updated successfully",
        complaint=ComplaintOut.model_validate(complaint),
    )
