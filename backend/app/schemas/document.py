from typing import List

from pydantic import BaseModel


class PublicUrl(BaseModel):
    document_id: str
    url: str


class DocumentCategories(BaseModel):
    categories: List[str]
