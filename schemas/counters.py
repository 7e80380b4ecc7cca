from typing import Literal
from pydantic import BaseModel, Field


class ViewResult(BaseModel):
    incremented: bool
    views_count: int = Field(0, description="Question view counter after the call")


class VoteResult(BaseModel):
    action: Literal["added", "removed"]
    votes_count: int
