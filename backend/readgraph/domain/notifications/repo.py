"""Notification persistence."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence
from uuid import UUID, uuid4

from readgraph.domain.notifications.models import Notification, NotificationRefs, NotificationType
from readgraph.infra.postgres import get_pool


class NotificationSink(Protocol):
	async def append(
		self,
		recipient_id: UUID,
		actor_id: UUID,
		type: NotificationType,
		refs: NotificationRefs,
		message: str,
	) -> Optional[Notification]: ...

	async def append_many(
		self,
		recipient_ids: Sequence[UUID],
		actor_id: UUID,
		type: NotificationType,
		refs: NotificationRefs,
		message: str,
	) -> int: ...


_INSERT_SQL = """
INSERT INTO notifications (
	id, recipient_id, actor_id, type, message,
	content_id, content_kind, comment_id, request_id, book_id
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
"""


def _row_args(
	recipient_id: UUID,
	actor_id: UUID,
	type: NotificationType,
	refs: NotificationRefs,
	message: str,
) -> tuple:
	return (
		uuid4(),
		recipient_id,
		actor_id,
		type.value,
		message,
		refs.content_id,
		refs.content_kind,
		refs.comment_id,
		refs.request_id,
		refs.book_id,
	)


class PostgresNotificationSink:
	"""Writes notification rows; reading the inbox is handled elsewhere."""

	async def append(
		self,
		recipient_id: UUID,
		actor_id: UUID,
		type: NotificationType,
		refs: NotificationRefs,
		message: str,
	) -> Optional[Notification]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				_INSERT_SQL + " RETURNING *",
				*_row_args(recipient_id, actor_id, type, refs, message),
			)
		return Notification.from_record(dict(row)) if row else None

	async def append_many(
		self,
		recipient_ids: Sequence[UUID],
		actor_id: UUID,
		type: NotificationType,
		refs: NotificationRefs,
		message: str,
	) -> int:
		rows = [_row_args(recipient_id, actor_id, type, refs, message) for recipient_id in recipient_ids]
		if not rows:
			return 0
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.executemany(_INSERT_SQL, rows)
		return len(rows)


__all__ = ["NotificationSink", "PostgresNotificationSink"]
