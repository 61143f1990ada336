from pydantic import BaseModel, EmailStr
from typing import Optional

from agileflow.schemas.user import UserCreate, UserResponse


class UserRegister(UserCreate):
    """Public self-registration; same fields as an admin-created user"""
    pass


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    user: UserResponse


class RegisterResponse(BaseModel):
    message: str
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse


class TokenData(BaseModel):
    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None
