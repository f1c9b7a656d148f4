from datetime import date
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class CompanyRegistration(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)
    company_email: EmailStr
    company_phone: Optional[str] = None
    company_address: Optional[str] = None
    admin_name: str = Field(..., min_length=1)
    admin_email: EmailStr
    password: str
    subscription_tier: str = "basic"
    add_ons: List[str] = Field(default_factory=list)


class CompanySetup(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class CompanyView(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    subscription_tier: str
    subscription_status: str
    max_employees: int
    subscription_start_date: Optional[date] = None
    subscription_end_date: Optional[date] = None

    class Config:
        from_attributes = True


class SubscriptionUpdate(BaseModel):
    subscription_tier: Optional[str] = None
    subscription_status: Optional[str] = None
    max_employees: Optional[int] = Field(None, ge=1)


class PlanView(BaseModel):
    tier: str
    name: str
    subtitle: str
    monthly_price: float
    max_employees: int
    features: List[str]


class AddOnView(BaseModel):
    id: str
    name: str
    description: str
    price: float
    period: str


class PlanCatalogue(BaseModel):
    plans: List[PlanView]
    add_ons: List[AddOnView]
