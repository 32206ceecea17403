"""Domain models for follow edges and follow requests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class FollowRequestStatus(str, Enum):
	"""Supported follow request statuses."""

	PENDING = "pending"
	APPROVED = "approved"
	REJECTED = "rejected"


class FollowOutcome(str, Enum):
	"""Result of a follow attempt. Soft outcomes are values, not errors."""

	FOLLOWED = "followed"
	REQUESTED = "requested"
	ALREADY_FOLLOWING = "already_following"
	ALREADY_REQUESTED = "already_requested"


@dataclass(slots=True)
class UserNode:
	"""Read-only view of a user account as seen by the follow graph."""

	id: UUID
	handle: str
	display_name: Optional[str]
	is_public: bool
	follower_count: int = 0
	following_count: int = 0

	@property
	def label(self) -> str:
		return self.display_name or self.handle

	@classmethod
	def from_record(cls, record: dict) -> "UserNode":
		return cls(
			id=UUID(str(record["id"])),
			handle=record["handle"],
			display_name=record.get("display_name"),
			is_public=bool(record["is_public"]),
			follower_count=int(record.get("follower_count") or 0),
			following_count=int(record.get("following_count") or 0),
		)


@dataclass(slots=True)
class FollowRequest:
	"""Pending gate on a follow edge for private accounts."""

	id: UUID
	requester_id: UUID
	target_id: UUID
	status: FollowRequestStatus
	created_at: datetime
	responded_at: Optional[datetime] = None

	@property
	def is_pending(self) -> bool:
		return self.status is FollowRequestStatus.PENDING

	@classmethod
	def from_record(cls, record: dict) -> "FollowRequest":
		return cls(
			id=UUID(str(record["id"])),
			requester_id=UUID(str(record["requester_id"])),
			target_id=UUID(str(record["target_id"])),
			status=FollowRequestStatus(record["status"]),
			created_at=record["created_at"],
			responded_at=record.get("responded_at"),
		)
