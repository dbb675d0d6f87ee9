from typing import Any, Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from database import get_db
from models import Admin, User, Volunteer
from security import ROLE_ADMIN, ROLE_CITIZEN, ROLE_VOLUNTEER, decode_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _access_claims(token: str, role: str) -> Dict[str, Any]:
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token"
        )
    if payload.get("role") != role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject"
        )
    return payload


def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> User:
    payload = _access_claims(token, ROLE_CITIZEN)

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
        )
    if user.is_blocked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been blocked. Please contact administrator.",
        )
    return user


def get_current_volunteer(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Volunteer:
    payload = _access_claims(token, ROLE_VOLUNTEER)

    volunteer = (
        db.query(Volunteer).filter(Volunteer.id == int(payload["sub"])).first()
    )
    if not volunteer:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Volunteer not found"
        )
    if volunteer.status != "approved":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Volunteer account is {volunteer.status}",
        )
    return volunteer


def get_current_admin(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Admin:
    payload = _access_claims(token, ROLE_ADMIN)

    admin = db.query(Admin).filter(Admin.id == int(payload["sub"])).first()
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin not found"
        )
    if not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin account is inactive"
        )
    return admin
