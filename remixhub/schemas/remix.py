"""Pydantic schemas for remix and history endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RemixRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_repo: str = Field(default="", alias="sourceRepo")
    target_repo: str = Field(default="", alias="targetRepo")
    source_token: str = Field(default="", alias="sourceToken", repr=False)
    target_token: str = Field(default="", alias="targetToken", repr=False)


class ErrorResponse(BaseModel):
    error: str


class HistoryResponse(BaseModel):
    id: str
    source_repo: str
    target_repo: str
    status: str
    error_message: str | None
    created_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class HistoryDetailResponse(HistoryResponse):
    logs: list[str]
    transcript: list[str]


class ProfileResponse(BaseModel):
    user_id: str
    display_name: str | None
    email: str | None
    credits: int

    model_config = {"from_attributes": True}
