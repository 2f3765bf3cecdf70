# app/tutorcenter/api/schemas/user.py
from pydantic import BaseModel, ConfigDict, EmailStr
from datetime import datetime
from typing import Optional

from ...models.db_models import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    role: UserRole

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserResponse(BaseModel):
    """A User as returned over the API; the password never leaves the server."""
    id: str
    email: str
    name: str
    role: UserRole
    avatar: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    token: Token
    user: UserResponse

# Internal representation of JWT data
class TokenData(BaseModel):
    sub: Optional[str] = None
    role: Optional[str] = None
