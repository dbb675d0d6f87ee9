from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


def default_location():
    return {"type": "Point", "coordinates": [0, 0]}


volunteer_assignments = Table(
    "volunteer_assignments",
    Base.metadata,
    Column(
        "volunteer_id",
        Integer,
        ForeignKey("volunteers.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "complaint_id",
        Integer,
        ForeignKey("complaints.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("assigned_at", DateTime(timezone=True), server_default=func.now()),
)

comment_likes = Table(
    "comment_likes",
    Base.metadata,
    Column(
        "comment_id",
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default="")
    username = Column(String, unique=True, index=True, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)
    phone_number = Column(String, default="")
    state = Column(String, default="")
    city = Column(String, default="")
    role = Column(String, nullable=False, default="user", index=True)
    profile_photo = Column(String, default="")
    is_blocked = Column(Boolean, default=False, index=True)
    reset_password_token = Column(String, nullable=True, index=True)
    reset_password_expire = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    complaints = relationship("Complaint", back_populates="reporter")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="admin")
    is_active = Column(Boolean, default=True)
    created_by_id = Column(Integer, ForeignKey("admins.id"), nullable=True)
    reset_password_token = Column(String, nullable=True, index=True)
    reset_password_expire = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    created_by = relationship("Admin", remote_side=[id])


class Volunteer(Base):
    __tablename__ = "volunteers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    is_active = Column(Boolean, default=True)
    approved_by_id = Column(Integer, ForeignKey("admins.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    reset_password_token = Column(String, nullable=True, index=True)
    reset_password_expire = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    approved_by = relationship("Admin")
    assigned_complaints = relationship(
        "Complaint",
        secondary=volunteer_assignments,
        order_by=volunteer_assignments.c.assigned_at,
    )


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=False)
    photo = Column(JSON, nullable=False, default=list)
    upvotes = Column(Integer, nullable=False, default=0)
    downvotes = Column(Integer, nullable=False, default=0)
    location_coords = Column(JSON, nullable=False, default=default_location)
    address = Column(String, nullable=False)
    # No foreign key: a deleted volunteer leaves this reference dangling.
    assigned_to = Column(Integer, nullable=True, index=True)
    status = Column(String, nullable=False, default="received", index=True)
    priority = Column(String, nullable=False, default="medium", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    reporter = relationship("User", back_populates="complaints")
    assignee = relationship(
        "Volunteer",
        primaryjoin="foreign(Complaint.assigned_to) == Volunteer.id",
        viewonly=True,
    )
    comments = relationship(
        "Comment", back_populates="complaint", cascade="all, delete-orphan"
    )
    votes = relationship(
        "Vote", back_populates="complaint", cascade="all, delete-orphan"
    )


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("user_id", "complaint_id", name="uq_vote_user_complaint"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    complaint_id = Column(
        Integer, ForeignKey("complaints.id"), nullable=False, index=True
    )
    vote_type = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    complaint = relationship("Complaint", back_populates="votes")


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    complaint_id = Column(
        Integer, ForeignKey("complaints.id"), nullable=False, index=True
    )
    content = Column(String(500), nullable=False)
    likes = Column(Integer, nullable=False, default=0)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())

    author = relationship("User")
    complaint = relationship("Complaint", back_populates="comments")
    liked_by = relationship("User", secondary=comment_likes)
