from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ComplaintStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class VoteType(str, Enum):
    UP = "up"
    DOWN = "down"


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"
    id: Optional[str] = Field(default_factory=_uuid, primary_key=True)
    name: str
    registration_number: str = Field(sa_column_kwargs={"unique": True}, index=True)
    # Derived once at registration; None when the number is not in the hostel table.
    hostel: Optional[str] = None
    email: str = Field(sa_column_kwargs={"unique": True}, index=True)
    password_hash: Optional[str] = None
    # 'student' or 'admin'
    role: str = Field(default="student")
    created_at: Optional[datetime] = Field(default_factory=_now)

    @property
    def is_admin(self) -> bool:
        return (self.role or "student").lower() == "admin"


class Complaint(SQLModel, table=True):
    __tablename__ = "complaints"
    id: Optional[str] = Field(default_factory=_uuid, primary_key=True)
    user_id: str = Field(foreign_key="profiles.id", index=True)
    category: str = Field(index=True)
    title: str
    description: str
    image_url: Optional[str] = None
    is_anonymous: bool = Field(default=False)
    # Aggregates of the votes table, recomputed after every vote transition.
    upvotes: int = Field(default=0)
    downvotes: int = Field(default=0)
    status: str = Field(default=ComplaintStatus.OPEN.value)
    created_at: Optional[datetime] = Field(default_factory=_now, index=True)
    updated_at: Optional[datetime] = None


class Vote(SQLModel, table=True):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("user_id", "complaint_id", name="uq_votes_user_complaint"),
    )
    id: Optional[str] = Field(default_factory=_uuid, primary_key=True)
    user_id: str = Field(foreign_key="profiles.id", index=True)
    complaint_id: str = Field(foreign_key="complaints.id", index=True)
    vote_type: str
    created_at: Optional[datetime] = Field(default_factory=_now)


class ComplaintReply(SQLModel, table=True):
    """Admin reply on a complaint. Rows are never updated."""
    __tablename__ = "complaint_replies"
    id: Optional[str] = Field(default_factory=_uuid, primary_key=True)
    complaint_id: str = Field(foreign_key="complaints.id", index=True)
    admin_id: str = Field(foreign_key="profiles.id")
    reply_text: str
    created_at: Optional[datetime] = Field(default_factory=_now)
