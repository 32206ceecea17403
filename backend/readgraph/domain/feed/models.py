"""Domain models for engageable content and ranked feed entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class ContentKind(str, Enum):
	REVIEW = "review"
	REFLECTION = "reflection"

	@property
	def supports_saves(self) -> bool:
		return self is ContentKind.REFLECTION

	@property
	def discovery(self) -> bool:
		"""Kinds whose following feed mixes in popular public content."""
		return self is ContentKind.REVIEW

	@property
	def table(self) -> str:
		return "book_reviews" if self is ContentKind.REVIEW else "reflections"


class FeedTab(str, Enum):
	FOLLOWING = "following"
	EVERYONE = "everyone"


class FeedSort(str, Enum):
	RELEVANT = "relevant"
	RECENT = "recent"


@dataclass(slots=True)
class EngageableContent:
	"""A review or reflection as seen by the feed. Read-only here."""

	id: UUID
	kind: ContentKind
	author_id: UUID
	created_at: Optional[datetime]
	like_count: int = 0
	comment_count: int = 0
	save_count: int = 0
	followers_only: bool = False
	author_is_public: bool = True

	@property
	def is_discoverable(self) -> bool:
		"""Visible to anyone: public author and not restricted to followers."""
		return self.author_is_public and not self.followers_only

	@classmethod
	def from_record(cls, record: dict, kind: ContentKind) -> "EngageableContent":
		return cls(
			id=UUID(str(record["id"])),
			kind=kind,
			author_id=UUID(str(record["author_id"])),
			created_at=record.get("created_at"),
			like_count=int(record.get("like_count") or 0),
			comment_count=int(record.get("comment_count") or 0),
			save_count=int(record.get("save_count") or 0) if kind.supports_saves else 0,
			followers_only=bool(record.get("followers_only") or False) if kind is ContentKind.REFLECTION else False,
			author_is_public=bool(record.get("author_is_public", True)),
		)


@dataclass(slots=True)
class ScoredItem:
	content: EngageableContent
	score: float
