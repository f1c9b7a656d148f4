from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    full_name: Optional[str] = None


class TenantContextView(BaseModel):
    """Role and company the caller currently acts for."""
    user_id: str
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    role: str
    actor_name: str


class LoginResponse(Token):
    user: dict
    context: TenantContextView
