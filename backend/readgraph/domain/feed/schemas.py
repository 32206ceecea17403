"""Pydantic schemas for feed responses."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class FeedItem(BaseModel):
	id: UUID
	kind: Literal["review", "reflection"]
	author_id: UUID
	created_at: Optional[datetime] = None
	like_count: int = 0
	comment_count: int = 0
	save_count: int = 0
	followers_only: bool = False
	score: Optional[float] = None


class FeedPage(BaseModel):
	items: List[FeedItem]
	page: int
	size: int
	total: int
	total_is_estimate: bool = False
	sort: Literal["relevant", "recent"] = "relevant"
