from sqlalchemy import Column, String, Text, DateTime, JSON, ForeignKey, Index

from app.db.base_class import Base, generate_uuid, utcnow

ACTION_TYPES = ("create", "update", "delete", "upload", "status_change")


class ActivityLogEntry(Base):
    """Append-only history of changes made to an employee's records."""
    __tablename__ = "employee_activity_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    action = Column(String, nullable=False)
    action_type = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    actor_id = Column(String(36), nullable=True)
    actor_name = Column(String, nullable=True)
    log_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activity_logs_employee_created", "employee_id", "created_at"),
    )

    def __repr__(self):
        return f"<ActivityLogEntry {self.id}: {self.employee_id} - {self.action}>"
