from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Index

from app.db.base_class import Base, generate_uuid, utcnow

CHECKUP_STATUSES = ("planned", "open", "done")


class HealthCheckup(Base):
    """Occupational health examination of one employee."""
    __tablename__ = "health_checkups"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    investigation_name = Column(String, nullable=False)
    appointment_date = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="planned")
    certificate_path = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_health_checkups_employee", "company_id", "employee_id"),
    )
