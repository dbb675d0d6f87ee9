from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models import Complaint, User, Vote
from routes.complaints import get_complaint_or_404
from schemas import VoteEnvelope, VoteRequest, VoteResult, VoteStats, VoteStatsEnvelope
from services.voting import VOTE_TYPES, apply_vote

router = APIRouter(prefix="/api/votes", tags=["Votes"])


@router.post("/{complaint_id}", response_model=VoteResult)
def vote_on_complaint(
    complaint_id: int,
    payload: VoteRequest,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.vote_type not in VOTE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid vote type. Must be "upvote" or "downvote"',
        )

    complaint = (
        db.query(Complaint)
        .filter(Complaint.id == complaint_id)
        .with_for_update()
        .first()
    )
    if not complaint:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Complaint not found"
        )

    try:
        message, vote, created = apply_vote(
            db, complaint, current_user, payload.vote_type
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A vote for this complaint is already being recorded",
        ) from exc

    if vote is not None:
        db.refresh(vote)
    db.refresh(complaint)

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return VoteResult(
        message=message,
        vote=vote,
        upvotes=complaint.upvotes,
        downvotes=complaint.downvotes,
    )


@router.get("/complaint/{complaint_id}/stats", response_model=VoteStatsEnvelope)
def vote_stats(complaint_id: int, db: Session = Depends(get_db)):
    complaint = get_complaint_or_404(db, complaint_id)
    upvotes = complaint.upvotes or 0
    downvotes = complaint.downvotes or 0
    return VoteStatsEnvelope(
        stats=VoteStats(upvotes=upvotes, downvotes=downvotes, total=upvotes + downvotes)
    )


@router.get("/{complaint_id}", response_model=VoteEnvelope)
def my_vote(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    vote = (
        db.query(Vote)
        .filter(Vote.user_id == current_user.id, Vote.complaint_id == complaint_id)
        .first()
    )
    return VoteEnvelope(vote=vote)
