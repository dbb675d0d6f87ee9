"""
Complaint lifecycle and volunteer assignment rules.

Status changes are validated per actor: admins may move a complaint from any
status to any status, volunteers may only set the statuses they work with.
Every mutation here commits once, so the bookkeeping on the complaint and on
the volunteer's assignment list lands together or not at all.
"""

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import Admin, Comment, Complaint, Volunteer, default_location

logger = logging.getLogger(__name__)

COMPLAINT_STATUSES = ("received", "in_review", "assigned", "resolved", "rejected")
COMPLAINT_PRIORITIES = ("low", "medium", "high", "urgent")
VOLUNTEER_ALLOWED_STATUSES = ("assigned", "in_review", "resolved")
VOLUNTEER_STATUSES = ("pending", "approved", "blocked")

ACTOR_ADMIN = "admin"
ACTOR_VOLUNTEER = "volunteer"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def allowed_targets(actor: str, current: str) -> Tuple[str, ...]:
    if actor == ACTOR_ADMIN:
        return COMPLAINT_STATUSES
    if actor == ACTOR_VOLUNTEER:
        return VOLUNTEER_ALLOWED_STATUSES
    raise ValueError(f"Unknown actor: {actor}")


def validate_status_change(actor: str, current: str, target: Optional[str]) -> str:
    if not target:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Please provide status"
        )

    allowed = allowed_targets(actor, current)
    if target not in allowed:
        detail = "Invalid status value"
        if actor == ACTOR_VOLUNTEER:
            detail = f"{detail}. Allowed: {', '.join(allowed)}"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    return target


def change_status(
    db: Session, complaint: Complaint, target: Optional[str], actor: str
) -> Complaint:
    previous = complaint.status
    complaint.status = validate_status_change(actor, previous, target)
    complaint.updated_at = _now()
    db.commit()
    db.refresh(complaint)

    logger.info(
        "Complaint %s status %s -> %s by %s",
        complaint.id,
        previous,
        complaint.status,
        actor,
    )
    return complaint


def _drop_assignment(volunteer: Optional[Volunteer], complaint: Complaint) -> None:
    if volunteer is not None and complaint in volunteer.assigned_complaints:
        volunteer.assigned_complaints.remove(complaint)


def assign_complaint(
    db: Session, complaint: Complaint, volunteer: Volunteer
) -> Complaint:
    if volunteer.status != "approved":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Volunteer is not approved",
        )

    if complaint.assigned_to and complaint.assigned_to != volunteer.id:
        _drop_assignment(db.get(Volunteer, complaint.assigned_to), complaint)

    complaint.assigned_to = volunteer.id
    complaint.status = "assigned"
    complaint.updated_at = _now()
    if complaint not in volunteer.assigned_complaints:
        volunteer.assigned_complaints.append(complaint)

    db.commit()
    db.refresh(complaint)
    logger.info("Complaint %s assigned to volunteer %s", complaint.id, volunteer.id)
    return complaint


def unassign_complaint(db: Session, complaint: Complaint) -> Complaint:
    if not complaint.assigned_to:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Complaint is not assigned to any volunteer",
        )

    volunteer_id = complaint.assigned_to
    _drop_assignment(db.get(Volunteer, volunteer_id), complaint)

    complaint.assigned_to = None
    complaint.status = "in_review"
    complaint.updated_at = _now()

    db.commit()
    db.refresh(complaint)
    logger.info("Complaint %s unassigned from volunteer %s", complaint.id, volunteer_id)
    return complaint


def delete_complaint(db: Session, complaint: Complaint, commit: bool = True) -> int:
    """Delete a complaint with its comments and assignment bookkeeping.

    Returns the number of comments removed. With commit=False the caller
    owns the transaction.
    """
    comments = db.query(Comment).filter(Comment.complaint_id == complaint.id).all()
    for comment in comments:
        db.delete(comment)

    if complaint.assigned_to:
        _drop_assignment(db.get(Volunteer, complaint.assigned_to), complaint)

    complaint_id = complaint.id
    db.delete(complaint)
    if commit:
        db.commit()

    logger.info(
        "Complaint %s deleted with %s comment(s)", complaint_id, len(comments)
    )
    return len(comments)


def approve_volunteer(db: Session, volunteer: Volunteer, admin: Admin) -> Volunteer:
    if volunteer.status == "approved":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Volunteer already approved",
        )

    volunteer.status = "approved"
    volunteer.approved_by_id = admin.id
    volunteer.approved_at = _now()
    db.commit()
    db.refresh(volunteer)
    logger.info("Volunteer %s approved by admin %s", volunteer.id, admin.id)
    return volunteer


def toggle_volunteer_block(db: Session, volunteer: Volunteer) -> Volunteer:
    volunteer.status = "approved" if volunteer.status == "blocked" else "blocked"
    db.commit()
    db.refresh(volunteer)
    logger.info("Volunteer %s is now %s", volunteer.id, volunteer.status)
    return volunteer


def parse_location(raw: Any) -> dict:
    """Parse a submitted GeoJSON point; anything malformed falls back to [0, 0]."""
    if not raw:
        return default_location()

    try:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
        coordinates = parsed.get("coordinates")
        lng, lat = (float(value) for value in coordinates)
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Ignoring malformed location_coords %r: %s", raw, exc)
        return default_location()

    if not (math.isfinite(lng) and math.isfinite(lat)):
        logger.warning("Ignoring non-finite location_coords %r", raw)
        return default_location()

    return {"type": "Point", "coordinates": [lng, lat]}


def is_location_set(location: Any) -> bool:
    if not isinstance(location, dict):
        return False
    coordinates = location.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
        return False
    try:
        lng, lat = (float(value) for value in coordinates)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lng) and math.isfinite(lat)):
        return False
    return not (lng == 0 and lat == 0)
