"""
Pydantic schemas for the HTTP routes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ExampleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    description: str = Field(default="", max_length=4096)


class ExampleReplace(ExampleCreate):
    pass


class ExamplePatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=256)
    description: Optional[str] = Field(default=None, max_length=4096)


class ExampleResponse(BaseModel):
    id: str
    name: str
    description: str
    created_at: datetime
    updated_at: datetime


class ExampleListResponse(BaseModel):
    items: list[ExampleResponse]


class OtpIssueRequest(BaseModel):
    user_phone_number: str = Field(..., min_length=3, max_length=32)
    user_id: str = Field(..., min_length=1, max_length=128)


class OtpResponse(BaseModel):
    id: str
    status: str
    valid_attempts: int
    retry_attempts: int
    user_phone_number: str
    user_id: str
    creation_date: datetime
    modification_date: datetime


class OtpVerifyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)


class OtpVerifyResponse(BaseModel):
    verified: bool
    otp: OtpResponse


class HealthResponse(BaseModel):
    status: Literal["ok"]
    env: str
