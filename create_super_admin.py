"""Seed the first super admin account.

Run once after the tables exist: ``python create_super_admin.py``.
"""

import logging
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

import models
from database import Base, SessionLocal, engine
from security import hash_password

logger = logging.getLogger("cleanstreet.seed")

SUPER_ADMIN_EMAIL = os.getenv("SUPER_ADMIN_EMAIL", "admin@cleanstreet.com")
SUPER_ADMIN_PASSWORD = os.getenv("SUPER_ADMIN_PASSWORD", "Admin@123")
SUPER_ADMIN_NAME = os.getenv("SUPER_ADMIN_NAME", "CleanStreet Admin")


def create_super_admin(db) -> bool:
    """Returns False when an admin with the configured email already exists."""
    email = SUPER_ADMIN_EMAIL.lower()
    existing = db.query(models.Admin).filter(models.Admin.email == email).first()
    if existing:
        logger.info("Admin %s already exists; use forgot password to recover it", email)
        return False

    db.add(
        models.Admin(
            name=SUPER_ADMIN_NAME,
            email=email,
            password_hash=hash_password(SUPER_ADMIN_PASSWORD),
            role="super_admin",
            is_active=True,
        )
    )
    db.commit()
    logger.info("Super admin %s created", email)
    return True


def main() -> int:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = create_super_admin(db)
    except SQLAlchemyError:
        logger.exception("Could not create super admin")
        return 1
    finally:
        db.close()

    if created:
        print("=" * 50)
        print(f"Email: {SUPER_ADMIN_EMAIL.lower()}")
        print(f"Password: {SUPER_ADMIN_PASSWORD}")
        print("=" * 50)
        print("Change this password after the first login.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
