from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AccessRequestCreate(BaseModel):
    email: EmailStr
    name: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=2000)


class AccessRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None = None
    status: Literal["pending", "approved", "rejected"]
    notes: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RejectAccessRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class AdminAccessRequestCreate(BaseModel):
    email: EmailStr
    name: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=2000)
    # Admin-added entries pre-approve the email unless told otherwise
    approved: bool = True


class AccessStatusCheck(BaseModel):
    email: EmailStr


class AccessStatusOut(BaseModel):
    approved: bool
    status: Literal["pending", "approved", "rejected"]
    message: str | None = None
