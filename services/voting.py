import logging
from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Complaint, User, Vote

logger = logging.getLogger(__name__)

VOTE_TYPES = ("upvote", "downvote")


def recount_votes(db: Session, complaint: Complaint) -> Complaint:
    """Derive the complaint's counters from the vote ledger."""
    db.flush()
    counts = dict(
        db.query(Vote.vote_type, func.count(Vote.id))
        .filter(Vote.complaint_id == complaint.id)
        .group_by(Vote.vote_type)
        .all()
    )
    complaint.upvotes = counts.get("upvote", 0)
    complaint.downvotes = counts.get("downvote", 0)
    return complaint


def apply_vote(
    db: Session, complaint: Complaint, user: User, vote_type: Optional[str]
) -> Tuple[str, Optional[Vote], bool]:
    """Cast, remove or flip the user's vote on a complaint.

    Returns (message, vote or None when removed, whether a vote was created).
    The caller commits.
    """
    if vote_type not in VOTE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid vote type. Must be "upvote" or "downvote"',
        )

    existing = (
        db.query(Vote)
        .filter(Vote.user_id == user.id, Vote.complaint_id == complaint.id)
        .first()
    )

    if existing is None:
        vote = Vote(user_id=user.id, complaint_id=complaint.id, vote_type=vote_type)
        db.add(vote)
        recount_votes(db, complaint)
        return "Vote registered", vote, True

    if existing.vote_type == vote_type:
        db.delete(existing)
        recount_votes(db, complaint)
        return "Vote removed", None, False

    logger.debug(
        "User %s switches vote on complaint %s from %s to %s",
        user.id,
        complaint.id,
        existing.vote_type,
        vote_type,
    )
    existing.vote_type = vote_type
    recount_votes(db, complaint)
    return "Vote updated", existing, False
