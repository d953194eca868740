from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from sportspm.models.user import UserRole
from sportspm.schemas.user import UserRead


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    email: Optional[str] = None


class UserRegister(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole = UserRole.TEAM_MEMBER


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthResponse(Token):
    """Login/registration response: the token plus the user it belongs to."""
    message: str
    user: UserRead
    token: str
