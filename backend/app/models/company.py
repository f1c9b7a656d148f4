from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, Index

from app.db.base_class import Base, generate_uuid, utcnow

SUBSCRIPTION_TIERS = ("basic", "standard", "premium")
SUBSCRIPTION_STATUSES = ("trial", "active", "inactive", "cancelled")

ROLE_SUPER_ADMIN = "super_admin"
ROLE_COMPANY_ADMIN = "company_admin"
ROLE_EMPLOYEE = "employee"
ROLES = (ROLE_SUPER_ADMIN, ROLE_COMPANY_ADMIN, ROLE_EMPLOYEE)


class Company(Base):
    """A tenant. Every tenant-owned row references one company."""
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    subscription_tier = Column(String, nullable=False, default="basic")
    subscription_status = Column(String, nullable=False, default="trial")
    max_employees = Column(Integer, nullable=False, default=5)
    subscription_start_date = Column(Date, nullable=True)
    subscription_end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Company {self.id}: {self.name} ({self.subscription_tier}/{self.subscription_status})>"


class UserRoleAssignment(Base):
    """Role and company of a user. Read on every request, never cached in tokens."""
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    role = Column(String, nullable=False, default=ROLE_EMPLOYEE)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


Index("idx_user_roles_company", UserRoleAssignment.company_id)
