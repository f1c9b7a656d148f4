from typing import Any, List

from pydantic import BaseModel, Field


class Channel(BaseModel):
    id: str
    name: str
    type: str


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=4000)


class NotificationList(BaseModel):
    items: List[dict[str, Any]]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
