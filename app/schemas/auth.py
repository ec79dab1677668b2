from pydantic import BaseModel
from uuid import UUID

from app.db.models.user import UserRole, STAFF_ROLES

class Actor(BaseModel):
    """Authenticated caller as supplied by the identity service."""
    id: UUID
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT
