from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

class Pet(SQLModel, table=True):
    __tablename__ = "pets"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(foreign_key="users.id", index=True)
    name: str
    species: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
