import logging
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from security import (
    generate_reset_token,
    hash_password,
    hash_reset_token,
    is_reset_token_live,
)
from services import notifications

logger = logging.getLogger(__name__)


def start_reset(
    db: Session,
    account,
    reset_url_base: str,
    ttl: timedelta,
    expires_in: str,
    kind: str,
) -> None:
    """Store a reset token on the account and email the link.

    A failed email clears the token again and surfaces as a 500.
    """
    raw_token, hashed_token, expires_at = generate_reset_token(ttl)
    account.reset_password_token = hashed_token
    account.reset_password_expire = expires_at
    db.commit()

    email = notifications.password_reset_email(
        account.name,
        account.email,
        f"{reset_url_base}/{raw_token}",
        expires_in,
        kind,
    )
    try:
        notifications.send_email(email)
    except notifications.EmailDeliveryError:
        logger.exception("Password reset email for %s %s failed", kind, account.id)
        account.reset_password_token = None
        account.reset_password_expire = None
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Email could not be sent",
        )


def complete_reset(db: Session, model, token: str, password: str):
    account = (
        db.query(model)
        .filter(model.reset_password_token == hash_reset_token(token))
        .first()
    )
    if not account or not is_reset_token_live(account.reset_password_expire):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired token",
        )

    account.password_hash = hash_password(password)
    account.reset_password_token = None
    account.reset_password_expire = None
    db.commit()
    logger.info("Password reset for %s %s", model.__tablename__, account.id)
    return account
