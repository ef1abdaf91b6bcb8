"""User model."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from jobboard.core.roles import Role
from jobboard.core.security import verify_password


class User(BaseModel):
    """Credential record stored in the ``users`` collection."""

    model_config = ConfigDict(use_enum_values=False)

    id: str
    name: str
    email: str
    role: Role = Role.APPLICANT
    avatar: Optional[str] = None

    password_hash: Optional[str] = Field(default=None, repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)

    login_attempts: int = 0
    lock_until: Optional[datetime] = None

    password_reset_token: Optional[str] = Field(default=None, repr=False)
    password_reset_expires: Optional[datetime] = None

    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "User":
        """Build a record from a raw MongoDB document."""
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def is_locked(self, now: datetime) -> bool:
        """Locked iff ``lock_until`` is set and still in the future."""
        return self.lock_until is not None and self.lock_until > now

    def check_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password_hash)

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
