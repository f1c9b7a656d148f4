from sqlalchemy import Column, String, Text, Integer, Boolean, Date, DateTime, JSON, ForeignKey, Index

from app.db.base_class import Base, generate_uuid, utcnow

DOCUMENT_CATEGORIES = (
    "policy",
    "procedure",
    "risk_assessment",
    "training",
    "incident_report",
    "audit_report",
    "certificate",
    "permit",
    "inspection",
    "other",
)


class Document(Base):
    """Metadata of a file held in the storage bucket under ``file_path``."""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, default="other")
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False, unique=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)
    uploaded_by = Column(String(36), nullable=True)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    expiry_date = Column(Date, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_documents_company_category", "company_id", "category"),
        Index("idx_documents_employee", "employee_id"),
    )
