"""Pydantic schemas for listings and their moderation sub-resources."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ListingCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=600)
    invite: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=10, max_length=1024)
    logo: str | None = Field(default=None, max_length=1024)
    discord_server_id: str | None = Field(default=None, max_length=64)
    language: str | None = Field(default=None, max_length=32)
    members: int = Field(default=0, ge=0, le=10_000_000)
    type: str | None = Field(default=None, max_length=32)
    rules: str | None = Field(default=None, max_length=4096)
    website: str | None = Field(default=None, max_length=255)
    nsfw: bool = False
    tags: list[str] = Field(default_factory=list)


class EditRequestCreate(BaseModel):
    """Proposed change set; unknown or empty fields are dropped before storage."""

    name: str | None = None
    description: str | None = Field(default=None, max_length=1024)
    logo: str | None = Field(default=None, max_length=1024)
    website: str | None = Field(default=None, max_length=255)
    language: str | None = Field(default=None, max_length=32)
    members: int | None = Field(default=None, ge=0, le=10_000_000)
    type: str | None = Field(default=None, max_length=32)
    nsfw: bool | None = None
    tags: list[str] | None = None


class EditResolution(BaseModel):
    edit_id: int
    expected_revision: int | None = None
    reason: str | None = Field(default=None, max_length=512)


class StatusUpdate(BaseModel):
    status: str
    reason: str | None = Field(default=None, max_length=512)


class ReportCreate(BaseModel):
    reason: str | None = Field(default=None, max_length=1024)


class MemberCountUpdate(BaseModel):
    members: Any = None


class ReviewCreate(BaseModel):
    rating: Any = None
    comment: str | None = Field(default=None, max_length=1024)


class CommentCreate(BaseModel):
    text: str | None = Field(default=None, max_length=2000)


class ReportRead(BaseModel):
    id: int
    reporter_id: int | None
    reason: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EditRequestRead(BaseModel):
    id: int
    requested_by_id: int
    changes: dict[str, Any]
    status: str
    rejection_reason: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewRead(BaseModel):
    id: int
    discord_username: str
    rating: int
    comment: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewList(BaseModel):
    reviews: list[ReviewRead]
    average_rating: float | None = None


class CommentRead(BaseModel):
    id: int
    user: str
    text: str
    created_at: datetime


class ListingRead(BaseModel):
    id: int
    name: str
    invite: str
    description: str
    language: str | None = None
    members: int
    discord_server_id: str
    type: str | None = None
    rules: str | None = None
    website: str | None = None
    nsfw: bool
    sponsored: bool
    tags: list[str]
    logo: str
    status: str
    rejection_reason: str | None = None
    submitter_id: int | None = None
    submitter_username: str | None = None
    revision: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ListingDetail(ListingRead):
    comments: list[CommentRead] = []


class ListingModeration(ListingRead):
    reports: list[ReportRead] = []
    edit_requests: list[EditRequestRead] = []


class SubmissionResponse(BaseModel):
    message: str
    id: int
