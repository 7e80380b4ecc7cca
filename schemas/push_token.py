from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PushTokenRegisterRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512, description="Device push token")
    user_agent: Optional[str] = Field(None, max_length=512, description="Client user agent / device hint")


class PushTokenRemoveRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)


class PushTokenResponse(BaseModel):
    token: str
    owner_user_id: int
    user_agent: Optional[str]
    registered_at: datetime
    revoked_at: Optional[datetime]

    class Config:
        from_attributes = True


class PushPayload(BaseModel):
    """What the push provider receives for one token"""
    title: str
    body: str
    link: str
    data: dict = Field(default_factory=dict)
