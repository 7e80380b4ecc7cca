from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class AuthorBrief(BaseModel):
    id: int
    full_name: str
    role: str

    class Config:
        from_attributes = True


class AnswerCreate(BaseModel):
    content: str = Field(..., description="Answer body")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Answer content must not be empty")
        return v.strip()


class AnswerUpdate(AnswerCreate):
    pass


class AnswerResponse(BaseModel):
    id: int
    question_id: int
    content: str
    is_pinned: bool
    edit_count: int
    original_content: Optional[str] = None
    edited_at: Optional[datetime] = None
    created_at: datetime
    votes_count: int = 0
    author: Optional[AuthorBrief] = None

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    content: str = Field(..., description="Message body")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Message content must not be empty")
        return v.strip()


class MessageResponse(BaseModel):
    id: int
    question_id: int
    content: str
    created_at: datetime
    sender: Optional[AuthorBrief] = None

    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]


class RejectQuestionRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000, description="Shown to the author")


class QuestionApprovalResponse(BaseModel):
    id: int
    title: str
    approval_status: str
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True


class WatchResponse(BaseModel):
    watching: bool
