from typing import Annotated, Optional

from pydantic import BaseModel, EmailStr, Field

from app.core.enum import Role

Password = Annotated[str, Field(min_length=6, max_length=72)]


class UserCreate(BaseModel):
    email: EmailStr
    password: Password
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: Optional[Role] = None
    bio: Optional[str] = None


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[Password] = None
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[Role] = None
    bio: Optional[str] = None


class LoginUser(BaseModel):
    email: EmailStr
    password: str
