from sqlalchemy import Column, String, Text, Date, DateTime, BigInteger, ForeignKey, Index

from app.db.base_class import Base, generate_uuid, utcnow

TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TASK_STATUSES = ("pending", "in_progress", "completed", "overdue")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    assigned_to = Column(String(36), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)
    audit_id = Column(String(36), ForeignKey("audits.id", ondelete="SET NULL"), nullable=True)
    priority = Column(String, nullable=False, default="medium")
    status = Column(String, nullable=False, default="pending")
    due_date = Column(Date, nullable=True)
    # Issue time (epoch microseconds) of the last applied status change or toggle
    status_revision = Column(BigInteger, nullable=False, default=0)
    # Issue time of the last explicit status change; toggles issued before it are stale
    status_set_revision = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_tasks_company_status", "company_id", "status"),
    )
