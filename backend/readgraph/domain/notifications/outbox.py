"""Redis stream outbox for follower fan-out of content events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from readgraph.domain.notifications.models import NotificationRefs, NotificationType
from readgraph.infra.redis import redis_client

STREAM_FANOUT = "notif:fanout"
_STREAM_MAXLEN = 100_000


def _now_ts() -> str:
	return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True, frozen=True)
class FanoutEvent:
	actor_id: UUID
	type: NotificationType
	refs: NotificationRefs
	message: str

	@classmethod
	def from_payload(cls, payload: dict[str, str]) -> Optional["FanoutEvent"]:
		"""Parse a stream entry; returns None for entries this worker does not handle."""
		if payload.get("event") != "publish":
			return None
		return cls(
			actor_id=UUID(payload["actor_id"]),
			type=NotificationType(payload["type"]),
			refs=NotificationRefs.from_fields(payload),
			message=payload.get("message", ""),
		)


async def publish_fanout_event(
	*,
	actor_id: UUID,
	type: NotificationType,
	refs: NotificationRefs,
	message: str,
) -> str:
	payload: dict[str, Any] = {
		"event": "publish",
		"actor_id": str(actor_id),
		"type": type.value,
		"message": message,
		"ts": _now_ts(),
		**refs.as_fields(),
	}
	return await redis_client.xadd(STREAM_FANOUT, payload, maxlen=_STREAM_MAXLEN, approximate=True)


__all__ = ["STREAM_FANOUT", "FanoutEvent", "publish_fanout_event"]
