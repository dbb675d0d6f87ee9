import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_admin
from models import Admin, Comment, Complaint, User, Vote
from schemas import (
    APIMessage,
    UserDetailEnvelope,
    UserEnvelope,
    UserOut,
    UserSummary,
    UserSummaryListEnvelope,
)
from services import storage, workflow
from services.voting import recount_votes

router = APIRouter(prefix="/api/admin/users", tags=["Admin Users"])
logger = logging.getLogger(__name__)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )
    return user


@router.get("", response_model=UserSummaryListEnvelope)
def list_users(
    is_blocked: Optional[bool] = Query(default=None),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    query = db.query(User)
    if is_blocked is not None:
        query = query.filter(User.is_blocked == is_blocked)
    users = query.order_by(User.created_at.desc(), User.id.desc()).all()

    counts = dict(
        db.query(Complaint.user_id, func.count(Complaint.id))
        .group_by(Complaint.user_id)
        .all()
    )
    summaries = [
        UserSummary(
            **UserOut.model_validate(user).model_dump(),
            complaints_count=counts.get(user.id, 0),
        )
        for user in users
    ]
    return UserSummaryListEnvelope(count=len(summaries), users=summaries)


@router.get("/{user_id}", response_model=UserDetailEnvelope)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    user = get_user_or_404(db, user_id)
    complaints = (
        db.query(Complaint)
        .filter(Complaint.user_id == user.id)
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .all()
    )
    return UserDetailEnvelope(
        user=user, complaints=complaints, complaints_count=len(complaints)
    )


@router.put("/{user_id}/block", response_model=UserEnvelope)
def toggle_block(
    user_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    user = get_user_or_404(db, user_id)
    user.is_blocked = not user.is_blocked
    db.commit()
    db.refresh(user)

    state = "blocked" if user.is_blocked else "unblocked"
    logger.info("User %s %s by admin %s", user.id, state, current_admin.id)
    return UserEnvelope(
        message=f"User {state} successfully", user=UserOut.model_validate(user)
    )


@router.delete("/{user_id}", response_model=APIMessage)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Remove a citizen with everything they contributed, in one transaction."""
    user = get_user_or_404(db, user_id)

    voted = set()
    for vote in db.query(Vote).filter(Vote.user_id == user.id).all():
        voted.add(vote.complaint)
        db.delete(vote)
    for complaint in voted:
        recount_votes(db, complaint)

    for comment in db.query(Comment).filter(Comment.user_id == user.id).all():
        db.delete(comment)
    db.flush()

    liked = db.query(Comment).filter(Comment.liked_by.any(User.id == user.id)).all()
    for comment in liked:
        comment.liked_by.remove(user)
        comment.likes = max(0, (comment.likes or 0) - 1)
    db.flush()

    photos = []
    complaints = db.query(Complaint).filter(Complaint.user_id == user.id).all()
    for complaint in complaints:
        photos.extend(complaint.photo or [])
        workflow.delete_complaint(db, complaint, commit=False)
    db.flush()

    db.delete(user)
    db.commit()
    storage.discard_photos(photos)

    logger.info(
        "User %s deleted by admin %s with %s complaint(s)",
        user_id,
        current_admin.id,
        len(complaints),
    )
    return APIMessage(message="User and associated data deleted successfully")
