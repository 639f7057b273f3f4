"""
Content API — Shared request schemas for ordered lists
"""
from pydantic import BaseModel, Field


class MoveRequest(BaseModel):
    item_id: str
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)
    search: str | None = Field(None, description="Active table filter; reordering is refused while set")


class OrderRequest(BaseModel):
    ordered_ids: list[str] = Field(..., min_length=1)
