from sqlalchemy import Column, String, Boolean, Date, DateTime, Text, JSON, ForeignKey, Index, UniqueConstraint

from app.db.base_class import Base, generate_uuid, utcnow


class Department(Base):
    __tablename__ = "departments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class JobRole(Base):
    __tablename__ = "job_roles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ExposureGroup(Base):
    __tablename__ = "exposure_groups"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    employee_number = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    hire_date = Column(Date, nullable=True)
    department_id = Column(String(36), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    job_role_id = Column(String(36), ForeignKey("job_roles.id", ondelete="SET NULL"), nullable=True)
    exposure_group_id = Column(String(36), ForeignKey("exposure_groups.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    # [{"id": ..., "label": ..., "type": ..., "value": ...}]
    profile_fields = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "employee_number", name="uq_employees_company_number"),
        Index("idx_employees_company_active", "company_id", "is_active"),
    )


class EmployeeNote(Base):
    """One note (or reply) on an employee profile. Replies point at their parent note."""
    __tablename__ = "employee_notes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), nullable=True)
    author_name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    parent_reply_id = Column(String(36), ForeignKey("employee_notes.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_employee_notes_employee_created", "employee_id", "created_at"),
    )
