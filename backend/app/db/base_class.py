import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import as_declarative, declared_attr


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@as_declarative()
class Base:
    id: Any
    __name__: str

    # Generate __tablename__ automatically
    @declared_attr  # type: ignore[misc]
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    def as_dict(self) -> dict[str, Any]:
        """Column values keyed by database column name."""
        return {
            attr.columns[0].name: getattr(self, attr.key)
            for attr in inspect(self).mapper.column_attrs
        }
