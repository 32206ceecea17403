"""Notification dispatch for follow graph and content events.

Every public entry point is best effort: failures are logged and counted,
never raised, so the mutation that triggered the notification always stands.
"""

from __future__ import annotations

import logging
import re
import time
from typing import List, Optional
from uuid import UUID

from readgraph.domain.notifications import outbox
from readgraph.domain.notifications.models import Comment, NotificationRefs, NotificationType
from readgraph.domain.notifications.repo import NotificationSink, PostgresNotificationSink
from readgraph.domain.social.models import UserNode
from readgraph.domain.social.repo import (
	FollowGraphStore,
	PostgresFollowGraphStore,
	PostgresUserDirectory,
	UserDirectory,
)
from readgraph.obs import metrics as obs_metrics
from readgraph.settings import settings

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)")


def extract_mentions(text: str | None) -> List[str]:
	"""Unique mentioned handles in order of first appearance."""
	if not text:
		return []
	return list(dict.fromkeys(MENTION_PATTERN.findall(text)))


def _about(title: Optional[str]) -> str:
	return f' about "{title}"' if title else ""


class NotificationDispatcher:
	"""Creates notification rows for graph and content events."""

	def __init__(
		self,
		*,
		sink: NotificationSink | None = None,
		users: UserDirectory | None = None,
		graph: FollowGraphStore | None = None,
		fanout_async: bool | None = None,
		batch_size: int | None = None,
	) -> None:
		self.sink = sink or PostgresNotificationSink()
		self.users = users or PostgresUserDirectory()
		self.graph = graph or PostgresFollowGraphStore()
		self.fanout_async = settings.notifications_fanout_async if fanout_async is None else fanout_async
		self.batch_size = batch_size or settings.fanout_batch_size

	async def _emit(
		self,
		recipient_id: UUID,
		actor: UserNode,
		type: NotificationType,
		message: str,
		refs: NotificationRefs | None = None,
	) -> bool:
		if str(recipient_id) == str(actor.id):
			return False
		try:
			await self.sink.append(recipient_id, actor.id, type, refs or NotificationRefs(), message)
		except Exception:
			logger.exception(
				"notifications.append_failed",
				extra={"type": type.value, "recipient_id": str(recipient_id)},
			)
			obs_metrics.inc_notification_dropped(type.value)
			return False
		obs_metrics.inc_notification_created(type.value)
		return True

	# --- Graph events -----------------------------------------------------

	async def notify_follow(self, actor: UserNode, recipient_id: UUID) -> bool:
		return await self._emit(recipient_id, actor, NotificationType.FOLLOW, f"{actor.label} started following you")

	async def notify_follow_request(self, actor: UserNode, recipient_id: UUID, request_id: UUID) -> bool:
		return await self._emit(
			recipient_id,
			actor,
			NotificationType.FOLLOW_REQUEST,
			f"{actor.label} requested to follow you",
			NotificationRefs(request_id=request_id),
		)

	async def notify_follow_accepted(self, actor: UserNode, recipient_id: UUID, request_id: UUID) -> bool:
		return await self._emit(
			recipient_id,
			actor,
			NotificationType.FOLLOW_ACCEPTED,
			f"{actor.label} accepted your follow request",
			NotificationRefs(request_id=request_id),
		)

	# --- Comment events ---------------------------------------------------

	@staticmethod
	def _comment_refs(comment: Comment) -> NotificationRefs:
		return NotificationRefs(
			content_id=comment.content_id,
			content_kind=comment.content_kind,
			comment_id=comment.id,
		)

	async def notify_comment(self, actor: UserNode, content_author_id: UUID, comment: Comment) -> bool:
		message = f"{actor.label} commented on your {comment.content_kind}{_about(comment.book_title)}"
		return await self._emit(content_author_id, actor, NotificationType.COMMENT, message, self._comment_refs(comment))

	async def notify_comment_reply(self, actor: UserNode, parent_author_id: UUID, comment: Comment) -> bool:
		message = f"{actor.label} replied to your comment{_about(comment.book_title)}"
		return await self._emit(
			parent_author_id,
			actor,
			NotificationType.COMMENT_REPLY,
			message,
			self._comment_refs(comment),
		)

	async def process_mentions(self, actor: UserNode, comment: Comment) -> int:
		"""Notify every resolvable `@handle` in the comment body once."""
		handles = extract_mentions(comment.body)
		if not handles:
			return 0
		try:
			resolved = await self.users.find_ids_by_handles(handles)
		except Exception:
			logger.exception("notifications.mention_lookup_failed", extra={"comment_id": str(comment.id)})
			obs_metrics.inc_notification_dropped(NotificationType.MENTION.value)
			return 0
		message = f"{actor.label} mentioned you in a comment{_about(comment.book_title)}"
		refs = self._comment_refs(comment)
		sent = 0
		seen: set[UUID] = set()
		for handle in handles:
			recipient_id = resolved.get(handle)
			if recipient_id is None or recipient_id in seen:
				continue
			seen.add(recipient_id)
			if await self._emit(recipient_id, actor, NotificationType.MENTION, message, refs):
				sent += 1
		return sent

	async def on_comment_created(
		self,
		actor: UserNode,
		comment: Comment,
		*,
		content_author_id: UUID,
		parent_author_id: UUID | None = None,
	) -> None:
		if comment.is_reply and parent_author_id is not None:
			await self.notify_comment_reply(actor, parent_author_id, comment)
		else:
			await self.notify_comment(actor, content_author_id, comment)
		await self.process_mentions(actor, comment)

	# --- Content fan-out --------------------------------------------------

	async def publish_content(
		self,
		actor_id: UUID,
		type: NotificationType,
		refs: NotificationRefs,
		message: str,
	) -> None:
		"""Notify every follower of `actor_id`, through the outbox or inline."""
		if not type.fans_out:
			raise ValueError(f"{type.value} notifications are not fanned out")
		try:
			if self.fanout_async:
				await outbox.publish_fanout_event(actor_id=actor_id, type=type, refs=refs, message=message)
				obs_metrics.inc_fanout_event("queued")
				return
			obs_metrics.inc_fanout_event("inline")
			await self.fan_out_to_followers(actor_id, type, refs, message)
		except Exception:
			logger.exception("notifications.fanout_failed", extra={"type": type.value, "actor_id": str(actor_id)})
			obs_metrics.inc_notification_dropped(type.value)

	async def book_finished(self, actor: UserNode, *, book_id: UUID, title: str) -> None:
		await self.publish_content(
			actor.id,
			NotificationType.BOOK_FINISHED,
			NotificationRefs(book_id=book_id),
			f'{actor.label} finished reading "{title}"',
		)

	async def review_posted(self, actor: UserNode, *, review_id: UUID, book_id: UUID, title: str) -> None:
		await self.publish_content(
			actor.id,
			NotificationType.REVIEW_POSTED,
			NotificationRefs(content_id=review_id, content_kind="review", book_id=book_id),
			f'{actor.label} reviewed "{title}"',
		)

	async def fan_out_to_followers(
		self,
		actor_id: UUID,
		type: NotificationType,
		refs: NotificationRefs,
		message: str,
	) -> int:
		"""Walk the actor's followers in keyset batches, one row per follower.

		Raises on storage failure; rows written by earlier batches stay written.
		"""
		written = 0
		after: UUID | None = None
		while True:
			follower_ids = await self.graph.list_follower_ids(actor_id, limit=self.batch_size, after=after)
			if not follower_ids:
				break
			recipients = [follower_id for follower_id in follower_ids if follower_id != actor_id]
			started = time.perf_counter()
			rows = await self.sink.append_many(recipients, actor_id, type, refs, message)
			obs_metrics.observe_fanout_batch(rows, time.perf_counter() - started)
			obs_metrics.inc_notification_created(type.value, rows)
			written += rows
			logger.debug(
				"notifications.fanout_batch_written",
				extra={"actor_id": str(actor_id), "rows": rows, "type": type.value},
			)
			if len(follower_ids) < self.batch_size:
				break
			after = follower_ids[-1]
		return written


__all__ = ["MENTION_PATTERN", "NotificationDispatcher", "extract_mentions"]
