from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models import User
from schemas import UserListEnvelope, UserStats, UserStatsEnvelope

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=UserListEnvelope)
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return UserListEnvelope(count=len(users), users=users)


@router.get("/stats", response_model=UserStatsEnvelope)
def user_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    return UserStatsEnvelope(
        stats=UserStats(
            total_users=sum(by_role.values()),
            active_users=by_role.get("user", 0),
            volunteers=by_role.get("volunteer", 0),
            admins=by_role.get("admin", 0),
        )
    )
