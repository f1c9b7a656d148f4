"""
Safety management records: audits with their checklists, risk assessments,
incidents, investigations, measures, the per-company category lists, training
courses and the training/activity tables used by the automation rules.
"""

import random
from datetime import date

from sqlalchemy import Column, String, Text, Integer, Boolean, Date, DateTime, JSON, ForeignKey, UniqueConstraint

from app.db.base_class import Base, generate_uuid, utcnow

INVESTIGATION_STATUSES = ("open", "in_progress", "completed", "closed")
TRAINING_STATUSES = ("required", "scheduled", "completed", "expired")
CHECKLIST_ITEM_STATUSES = ("pending", "compliant", "non_compliant", "not_applicable")
LESSON_STATUSES = ("draft", "published")


def generate_investigation_code(today: date | None = None) -> str:
    """``G-YYYYMM-nnn`` reference shown to users."""
    today = today or date.today()
    return f"G-{today:%Y%m}-{random.randint(0, 999):03d}"


class AuditCategory(Base):
    __tablename__ = "audit_categories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class RiskCategory(Base):
    __tablename__ = "risk_categories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Audit(Base):
    __tablename__ = "audits"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    audit_type = Column(String, nullable=True)
    category_id = Column(String(36), ForeignKey("audit_categories.id", ondelete="SET NULL"), nullable=True)
    status = Column(String, nullable=False, default="planned")
    auditor_id = Column(String(36), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    scheduled_date = Column(Date, nullable=True)
    completed_date = Column(Date, nullable=True)
    findings = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ActivityGroup(Base):
    __tablename__ = "activity_groups"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class RiskAssessment(Base):
    __tablename__ = "risk_assessments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    activity_group_id = Column(String(36), ForeignKey("activity_groups.id", ondelete="SET NULL"), nullable=True)
    category_id = Column(String(36), ForeignKey("risk_categories.id", ondelete="SET NULL"), nullable=True)
    risk_level = Column(String, nullable=True)
    risk_score = Column(Integer, nullable=True)
    status = Column(String, nullable=False, default="draft")
    assessment_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class Incident(Base):
    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    incident_number = Column(String, nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    incident_type = Column(String, nullable=False, default="other")
    severity = Column(String, nullable=False, default="minor")
    incident_date = Column(Date, nullable=False, index=True)
    location = Column(String, nullable=True)
    affected_employee_id = Column(String(36), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    investigation_status = Column(String, nullable=False, default="open")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Investigation(Base):
    __tablename__ = "investigations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    investigation_code = Column(String, nullable=False, default=lambda: generate_investigation_code())
    g_code = Column(String, nullable=True)
    related_incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="SET NULL"), nullable=True)
    assigned_to_id = Column(String(36), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    status = Column(String, nullable=False, default="open")
    priority = Column(String, nullable=False, default="medium")
    start_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    appointment_date = Column(Date, nullable=True)
    doctor = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    findings = Column(Text, nullable=True)
    recommendations = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Measure(Base):
    __tablename__ = "measures"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    measure_type = Column(String, nullable=False, default="preventive")
    status = Column(String, nullable=False, default="planned")
    risk_assessment_id = Column(String(36), ForeignKey("risk_assessments.id", ondelete="SET NULL"), nullable=True)
    audit_id = Column(String(36), ForeignKey("audits.id", ondelete="SET NULL"), nullable=True)
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="SET NULL"), nullable=True)
    responsible_person_id = Column(String(36), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    due_date = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class TrainingType(Base):
    __tablename__ = "training_types"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    validity_months = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class TrainingRecord(Base):
    __tablename__ = "training_records"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    training_type_id = Column(String(36), ForeignKey("training_types.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="required")
    completion_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "employee_id", "training_type_id", name="uq_training_records_assignment"),
    )


class EmployeeActivityAssignment(Base):
    __tablename__ = "employee_activity_assignments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    activity_group_id = Column(String(36), ForeignKey("activity_groups.id", ondelete="CASCADE"), nullable=False)
    assigned_date = Column(Date, nullable=True, default=date.today)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ActivityTrainingRequirement(Base):
    __tablename__ = "activity_training_requirements"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_group_id = Column(String(36), ForeignKey("activity_groups.id", ondelete="CASCADE"), nullable=False)
    training_type_id = Column(String(36), ForeignKey("training_types.id", ondelete="CASCADE"), nullable=False)
    is_mandatory = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class AuditChecklistItem(Base):
    __tablename__ = "audit_checklist_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    audit_id = Column(String(36), ForeignKey("audits.id", ondelete="CASCADE"), nullable=False, index=True)
    section = Column(String, nullable=True)
    question = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="pending")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class CourseLesson(Base):
    __tablename__ = "course_lessons"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    lesson_type = Column(String, nullable=False, default="text")
    content_url = Column(String, nullable=True)
    content_data = Column(JSON, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="draft")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
