from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4
from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB

class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    event: str = Field(index=True)
    message: str
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON().with_variant(JSONB, "postgresql")))
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.now)
