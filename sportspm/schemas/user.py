from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime
from sportspm.models.user import UserRole

# Shared properties
class UserBase(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    role: Optional[UserRole] = None
    avatar: Optional[str] = None

# Properties to receive via API on creation
class UserCreate(UserBase):
    email: EmailStr
    name: str = Field(min_length=1)
    password: str = Field(min_length=6)

# Properties to receive via API on update
class UserUpdate(UserBase):
    password: Optional[str] = Field(default=None, min_length=6)

# Properties a user may change on their own profile
class UserUpdateMe(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    avatar: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)

# Properties to return to client
class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    name: str
    role: UserRole
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
