"""Pydantic schemas for follows and follow requests."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FollowResult(BaseModel):
	status: Literal["followed", "requested", "already_following", "already_requested"]


class FollowRequestSummary(BaseModel):
	id: UUID
	requester_id: UUID
	target_id: UUID
	status: Literal["pending", "approved", "rejected"]
	created_at: datetime
	responded_at: Optional[datetime] = None
	requester_handle: Optional[str] = None
	requester_display_name: Optional[str] = None


class PendingRequestPage(BaseModel):
	items: List[FollowRequestSummary]
	page: int
	size: int
	total: int


class PendingCount(BaseModel):
	count: int = Field(..., ge=0)


class UserCard(BaseModel):
	user_id: UUID
	handle: str
	display_name: Optional[str] = None
	is_public: bool
	follower_count: int = 0
	following_count: int = 0


class UserCardPage(BaseModel):
	items: List[UserCard]
	page: int
	size: int
	total: int


class RelationshipStatus(BaseModel):
	user_id: UUID
	is_self: bool = False
	is_following: bool = False
	is_followed_by: bool = False
	has_pending_request: bool = False
