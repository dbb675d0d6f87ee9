from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models import Comment, User
from routes.complaints import get_complaint_or_404
from schemas import (
    APIMessage,
    CommentCreate,
    CommentEnvelope,
    CommentListEnvelope,
    LikeResult,
)

router = APIRouter(prefix="/api/comments", tags=["Comments"])


def get_comment_or_404(db: Session, comment_id: int) -> Comment:
    comment = db.query(Comment).filter(Comment.id == comment_id).first()
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found"
        )
    return comment


def comments_for(db: Session, complaint_id: int):
    return (
        db.query(Comment)
        .filter(Comment.complaint_id == complaint_id)
        .order_by(Comment.timestamp.desc(), Comment.id.desc())
        .all()
    )


@router.get("/complaint/{complaint_id}", response_model=CommentListEnvelope)
def list_comments(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comments = comments_for(db, complaint_id)
    return CommentListEnvelope(count=len(comments), comments=comments)


@router.post("", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
def create_comment(
    payload: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    content = (payload.content or "").strip()
    if not payload.complaint_id or not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide complaint ID and content",
        )

    get_complaint_or_404(db, payload.complaint_id)

    comment = Comment(
        user_id=current_user.id,
        complaint_id=payload.complaint_id,
        content=content,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return CommentEnvelope(message="Comment posted successfully", comment=comment)


@router.post("/{comment_id}/like", response_model=LikeResult)
def toggle_like(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comment = get_comment_or_404(db, comment_id)

    already_liked = current_user in comment.liked_by
    if already_liked:
        comment.liked_by.remove(current_user)
        comment.likes = max(0, (comment.likes or 0) - 1)
    else:
        comment.liked_by.append(current_user)
        comment.likes = (comment.likes or 0) + 1
    db.commit()

    return LikeResult(
        message="Comment unliked" if already_liked else "Comment liked",
        likes=comment.likes,
        is_liked=not already_liked,
    )


@router.delete("/{comment_id}", response_model=APIMessage)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comment = get_comment_or_404(db, comment_id)
    if comment.user_id != current_user.id and current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this comment",
        )

    db.delete(comment)
    db.commit()
    return APIMessage(message="Comment deleted successfully")
