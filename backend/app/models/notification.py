from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index

from app.db.base_class import Base, generate_uuid, utcnow


class Notification(Base):
    """In-app notification. Chat messages are notifications with category "message"."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), nullable=True, index=True)
    sender_name = Column(String, nullable=True)
    category = Column(String, nullable=False, default="system")
    type = Column(String, nullable=False, default="info")
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    channel = Column(String, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notifications_company_channel", "company_id", "category", "channel"),
    )
