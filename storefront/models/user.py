from enum import Enum
from pydantic import BaseModel
from ..config import Config

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"

class Requester(BaseModel):
    """Authenticated identity supplied by the auth layer"""
    user_id: int
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN or self.user_id in Config.ADMIN_IDS
