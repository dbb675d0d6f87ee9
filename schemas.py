from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class APIMessage(BaseModel):
    success: bool = True
    message: str


# --- identities -------------------------------------------------------------


class UserRegister(BaseModel):
    username: Optional[str] = Field(default=None, max_length=60)
    name: str = Field(default="", max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    state: str = Field(default="", max_length=100)
    city: str = Field(default="", max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    phone_number: Optional[str] = Field(default=None, max_length=30)
    state: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    profile_photo: Optional[str] = Field(default=None, max_length=1000)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=6, max_length=128)


class AdminCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class VolunteerRegister(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = Field(default=None, max_length=300)


class UserBrief(BaseModel):
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class UserOut(UserBrief):
    username: Optional[str]
    phone_number: Optional[str] = ""
    state: Optional[str] = ""
    city: Optional[str] = ""
    role: str
    profile_photo: Optional[str] = ""
    is_blocked: bool = False
    created_at: Optional[datetime]


class AdminOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    is_active: bool
    created_by_id: Optional[int] = None
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class VolunteerBrief(BaseModel):
    id: int
    name: str
    email: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class ComplaintBrief(BaseModel):
    id: int
    title: str
    status: str
    priority: str

    model_config = ConfigDict(from_attributes=True)


class VolunteerOut(VolunteerBrief):
    phone: Optional[str]
    address: Optional[str]
    approved_by_id: Optional[int]
    approved_at: Optional[datetime]
    created_at: Optional[datetime]
    assigned_complaints: List[ComplaintBrief] = Field(default_factory=list)


# --- complaints -------------------------------------------------------------


class LocationPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(default_factory=lambda: [0.0, 0.0])


class ComplaintOut(BaseModel):
    id: int
    user_id: int
    reporter: Optional[UserBrief] = None
    title: str
    description: str
    photo: List[str] = Field(default_factory=list)
    upvotes: int = 0
    downvotes: int = 0
    location_coords: LocationPoint
    address: str
    assigned_to: Optional[int] = None
    assignee: Optional[VolunteerBrief] = None
    status: str
    priority: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class StatusUpdate(BaseModel):
    status: Optional[str] = None


class AssignRequest(BaseModel):
    volunteer_id: Optional[int] = Field(default=None, alias="volunteerId")

    model_config = ConfigDict(populate_by_name=True)


# --- votes & comments -------------------------------------------------------


class VoteRequest(BaseModel):
    vote_type: Optional[str] = None


class VoteOut(BaseModel):
    id: int
    user_id: int
    complaint_id: int
    vote_type: str
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class CommentCreate(BaseModel):
    complaint_id: Optional[int] = None
    content: Optional[str] = Field(default=None, max_length=500)


class CommentOut(BaseModel):
    id: int
    user_id: int
    author: Optional[UserBrief] = None
    complaint_id: int
    content: str
    likes: int = 0
    liked_by: List[int] = Field(default_factory=list)
    timestamp: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

    @field_validator("liked_by", mode="before")
    @classmethod
    def _liker_ids(cls, value):
        return [getattr(item, "id", item) for item in value or []]


# --- envelopes --------------------------------------------------------------


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    refresh_token: str
    user: UserOut


class TokenPair(BaseModel):
    success: bool = True
    token: str
    refresh_token: str
    token_type: str = "bearer"


class AdminAuthResponse(BaseModel):
    success: bool = True
    token: str
    refresh_token: str
    admin: AdminOut


class VolunteerAuthResponse(BaseModel):
    success: bool = True
    token: str
    refresh_token: str
    volunteer: VolunteerBrief


class UserEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    user: UserOut


class UserListEnvelope(BaseModel):
    success: bool = True
    count: int
    users: List[UserOut]


class UserSummary(UserOut):
    complaints_count: int = 0


class UserSummaryListEnvelope(BaseModel):
    success: bool = True
    count: int
    users: List[UserSummary]


class UserDetailEnvelope(BaseModel):
    success: bool = True
    user: UserOut
    complaints: List[ComplaintOut]
    complaints_count: int


class AdminEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    admin: AdminOut


class AdminListEnvelope(BaseModel):
    success: bool = True
    count: int
    admins: List[AdminOut]


class VolunteerEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    volunteer: VolunteerOut


class VolunteerListEnvelope(BaseModel):
    success: bool = True
    count: int
    volunteers: List[VolunteerOut]


class ComplaintEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    complaint: ComplaintOut


class ComplaintListEnvelope(BaseModel):
    success: bool = True
    count: int
    complaints: List[ComplaintOut]


class ComplaintDetailEnvelope(ComplaintEnvelope):
    comments: List[CommentOut] = Field(default_factory=list)


class VoteResult(BaseModel):
    success: bool = True
    message: str
    vote: Optional[VoteOut]
    upvotes: int
    downvotes: int


class VoteEnvelope(BaseModel):
    success: bool = True
    vote: Optional[VoteOut]


class VoteStats(BaseModel):
    upvotes: int
    downvotes: int
    total: int


class VoteStatsEnvelope(BaseModel):
    success: bool = True
    stats: VoteStats


class CommentEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    comment: CommentOut


class CommentListEnvelope(BaseModel):
    success: bool = True
    count: int
    comments: List[CommentOut]


class LikeResult(BaseModel):
    success: bool = True
    message: str
    likes: int
    is_liked: bool


# --- statistics -------------------------------------------------------------


class StatusOverview(BaseModel):
    total_issues: int
    pending: int
    in_progress: int
    resolved: int


class StatusOverviewEnvelope(BaseModel):
    success: bool = True
    stats: StatusOverview


class UserStats(BaseModel):
    total_users: int
    active_users: int
    volunteers: int
    admins: int


class UserStatsEnvelope(BaseModel):
    success: bool = True
    stats: UserStats


class VolunteerDashboardStats(BaseModel):
    total: int
    assigned: int
    resolved: int


class VolunteerDashboardEnvelope(BaseModel):
    success: bool = True
    stats: VolunteerDashboardStats


class ComplaintStatusCounts(BaseModel):
    total: int
    pending: int
    in_review: int
    assigned: int
    resolved: int
    rejected: int


class PriorityCounts(BaseModel):
    urgent: int
    high: int
    medium: int
    low: int


class VolunteerCounts(BaseModel):
    total: int
    pending: int
    approved: int
    blocked: int


class AdminDashboardStats(BaseModel):
    complaints: ComplaintStatusCounts
    priority: PriorityCounts
    users: int
    volunteers: VolunteerCounts


class AdminDashboardEnvelope(BaseModel):
    success: bool = True
    stats: AdminDashboardStats
