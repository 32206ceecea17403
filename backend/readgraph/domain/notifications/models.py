"""Domain models for notifications and the comment events that trigger them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from uuid import UUID


class NotificationType(str, Enum):
	FOLLOW = "follow"
	FOLLOW_REQUEST = "follow_request"
	FOLLOW_ACCEPTED = "follow_accepted"
	COMMENT = "comment"
	COMMENT_REPLY = "comment_reply"
	MENTION = "mention"
	BOOK_FINISHED = "book_finished"
	REVIEW_POSTED = "review_posted"

	@property
	def fans_out(self) -> bool:
		"""Whether the notification goes to every follower of the actor."""
		return self in (NotificationType.BOOK_FINISHED, NotificationType.REVIEW_POSTED)


_REF_FIELDS = ("content_id", "content_kind", "comment_id", "request_id", "book_id")
_UUID_REF_FIELDS = frozenset({"content_id", "comment_id", "request_id", "book_id"})


@dataclass(slots=True, frozen=True)
class NotificationRefs:
	"""Optional pointers from a notification back to the entity it is about."""

	content_id: Optional[UUID] = None
	content_kind: Optional[str] = None
	comment_id: Optional[UUID] = None
	request_id: Optional[UUID] = None
	book_id: Optional[UUID] = None

	def as_fields(self) -> Dict[str, str]:
		"""Flatten into string fields suitable for a redis stream entry."""
		fields: Dict[str, str] = {}
		for name in _REF_FIELDS:
			value = getattr(self, name)
			if value is not None:
				fields[name] = str(value)
		return fields

	@classmethod
	def from_fields(cls, fields: Dict[str, str]) -> "NotificationRefs":
		values: Dict[str, object] = {}
		for name in _REF_FIELDS:
			raw = fields.get(name)
			if not raw:
				continue
			values[name] = UUID(raw) if name in _UUID_REF_FIELDS else raw
		return cls(**values)


@dataclass(slots=True)
class Comment:
	"""A comment on engageable content. Replies point at their parent via `parent_id`."""

	id: UUID
	content_id: UUID
	content_kind: str
	author_id: UUID
	body: str
	parent_id: Optional[UUID] = None
	book_title: Optional[str] = None

	@property
	def is_reply(self) -> bool:
		return self.parent_id is not None


@dataclass(slots=True)
class Notification:
	id: UUID
	recipient_id: UUID
	actor_id: UUID
	type: NotificationType
	message: str
	refs: NotificationRefs = field(default_factory=NotificationRefs)
	is_read: bool = False
	created_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: dict) -> "Notification":
		refs = NotificationRefs(
			content_id=record.get("content_id"),
			content_kind=record.get("content_kind"),
			comment_id=record.get("comment_id"),
			request_id=record.get("request_id"),
			book_id=record.get("book_id"),
		)
		return cls(
			id=UUID(str(record["id"])),
			recipient_id=UUID(str(record["recipient_id"])),
			actor_id=UUID(str(record["actor_id"])),
			type=NotificationType(record["type"]),
			message=record["message"],
			refs=refs,
			is_read=bool(record.get("is_read", False)),
			created_at=record.get("created_at"),
		)
