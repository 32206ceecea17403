"""Service layer for the follow graph: follows, follow requests and relationship reads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from readgraph.domain.notifications.dispatcher import NotificationDispatcher
from readgraph.domain.social import audit, policy
from readgraph.domain.social.exceptions import AccountPrivate, RequestNotPending, SocialError
from readgraph.domain.social.models import FollowOutcome, FollowRequest, FollowRequestStatus, UserNode
from readgraph.domain.social.repo import (
	FollowGraphStore,
	PostgresFollowGraphStore,
	PostgresUserDirectory,
	UserDirectory,
)
from readgraph.domain.social.schemas import (
	FollowRequestSummary,
	PendingRequestPage,
	RelationshipStatus,
	UserCard,
	UserCardPage,
)

logger = logging.getLogger(__name__)

_MAX_LIST_SIZE = 100


def _to_summary(request: FollowRequest, requester: UserNode | None = None) -> FollowRequestSummary:
	return FollowRequestSummary(
		id=request.id,
		requester_id=request.requester_id,
		target_id=request.target_id,
		status=request.status.value,
		created_at=request.created_at,
		responded_at=request.responded_at,
		requester_handle=requester.handle if requester else None,
		requester_display_name=requester.label if requester else None,
	)


def _to_card(user: UserNode) -> UserCard:
	return UserCard(
		user_id=user.id,
		handle=user.handle,
		display_name=user.display_name,
		is_public=user.is_public,
		follower_count=user.follower_count,
		following_count=user.following_count,
	)


def _window(page: int, size: int) -> tuple[int, int]:
	page = max(0, page)
	size = max(1, min(size, _MAX_LIST_SIZE))
	return page, size


class FollowGraphService:
	"""Mutates follow edges and requests and emits the matching notifications."""

	def __init__(
		self,
		*,
		store: FollowGraphStore | None = None,
		users: UserDirectory | None = None,
		dispatcher: NotificationDispatcher | None = None,
	) -> None:
		self.store = store or PostgresFollowGraphStore()
		self.users = users or PostgresUserDirectory()
		self.dispatcher = dispatcher or NotificationDispatcher(users=self.users, graph=self.store)

	async def _load_pair(self, follower_id: UUID, target_id: UUID) -> tuple[UserNode, UserNode]:
		follower = policy.ensure_user(await self.users.get_user(follower_id))
		target = policy.ensure_user(await self.users.get_user(target_id))
		return follower, target

	# --- Follow / unfollow ------------------------------------------------

	async def follow_user(self, follower_id: UUID, target_id: UUID) -> FollowOutcome:
		try:
			policy.guard_not_self(follower_id, target_id)
			follower, target = await self._load_pair(follower_id, target_id)
		except SocialError as exc:
			audit.inc_follow_reject(exc.reason)
			raise

		if await self.store.edge_exists(follower.id, target.id):
			audit.inc_follow_outcome(FollowOutcome.ALREADY_FOLLOWING.value)
			return FollowOutcome.ALREADY_FOLLOWING

		existing = await self.store.find_request_for_pair(follower.id, target.id)
		if existing is not None and existing.is_pending:
			audit.inc_follow_outcome(FollowOutcome.ALREADY_REQUESTED.value)
			return FollowOutcome.ALREADY_REQUESTED

		if target.is_public:
			outcome = await self._follow_public(follower, target)
		else:
			outcome = await self._request_follow(follower, target)
		audit.inc_follow_outcome(outcome.value)
		logger.debug("follows.outcome", extra={"outcome": outcome.value, "target_id": str(target.id)})
		return outcome

	async def _follow_public(self, follower: UserNode, target: UserNode) -> FollowOutcome:
		created = await self.store.create_edge(follower.id, target.id)
		if not created:
			return FollowOutcome.ALREADY_FOLLOWING
		await audit.log_follow_event("followed", {"follower_id": follower.id, "following_id": target.id})
		await self.dispatcher.notify_follow(follower, target.id)
		return FollowOutcome.FOLLOWED

	async def _request_follow(self, follower: UserNode, target: UserNode) -> FollowOutcome:
		request = await self.store.create_request(follower.id, target.id)
		if request is None:
			return FollowOutcome.ALREADY_REQUESTED
		await audit.log_follow_event(
			"requested",
			{"request_id": request.id, "requester_id": follower.id, "target_id": target.id},
		)
		await self.dispatcher.notify_follow_request(follower, target.id, request.id)
		return FollowOutcome.REQUESTED

	async def unfollow_user(self, follower_id: UUID, target_id: UUID) -> None:
		follower, target = await self._load_pair(follower_id, target_id)
		deleted = await self.store.delete_edge(follower.id, target.id)
		await self.store.delete_request(follower.id, target.id)
		if deleted:
			audit.inc_unfollow()
			await audit.log_follow_event("unfollowed", {"follower_id": follower.id, "following_id": target.id})

	# --- Follow requests --------------------------------------------------

	async def _load_for_response(self, request_id: UUID, approver_id: UUID) -> FollowRequest:
		request = policy.ensure_request(await self.store.find_request(request_id))
		policy.ensure_can_respond(request, approver_id)
		policy.ensure_pending(request)
		return request

	async def approve_follow_request(self, request_id: UUID, approver_id: UUID) -> FollowRequestSummary:
		request = await self._load_for_response(request_id, approver_id)
		approver = policy.ensure_user(await self.users.get_user(approver_id))
		approved = await self.store.approve_request(request.id, responded_at=datetime.now(timezone.utc))
		if approved is None:
			# Another response landed between the read and the update.
			raise RequestNotPending()

		audit.inc_request_decision(FollowRequestStatus.APPROVED.value)
		await audit.log_follow_event(
			"request_approved",
			{"request_id": approved.id, "requester_id": approved.requester_id, "target_id": approved.target_id},
		)
		await self.dispatcher.notify_follow_accepted(approver, approved.requester_id, approved.id)
		requester = await self.users.get_user(approved.requester_id)
		return _to_summary(approved, requester)

	async def reject_follow_request(self, request_id: UUID, approver_id: UUID) -> FollowRequestSummary:
		request = await self._load_for_response(request_id, approver_id)
		rejected = await self.store.update_request_status(
			request.id,
			FollowRequestStatus.REJECTED,
			responded_at=datetime.now(timezone.utc),
		)
		if rejected is None:
			raise RequestNotPending()

		audit.inc_request_decision(FollowRequestStatus.REJECTED.value)
		await audit.log_follow_event(
			"request_rejected",
			{"request_id": rejected.id, "requester_id": rejected.requester_id, "target_id": rejected.target_id},
		)
		requester = await self.users.get_user(rejected.requester_id)
		return _to_summary(rejected, requester)

	async def cancel_follow_request(self, requester_id: UUID, target_id: UUID) -> None:
		removed = await self.store.delete_request(requester_id, target_id)
		if removed:
			await audit.log_follow_event("request_cancelled", {"requester_id": requester_id, "target_id": target_id})

	async def list_pending_requests(self, user_id: UUID, page: int = 0, size: int = 20) -> PendingRequestPage:
		page, size = _window(page, size)
		rows = await self.store.list_pending_for_target(user_id, limit=size, offset=page * size)
		total = await self.store.count_pending_for_target(user_id)
		return PendingRequestPage(
			items=[_to_summary(request, requester) for request, requester in rows],
			page=page,
			size=size,
			total=total,
		)

	async def count_pending_requests(self, user_id: UUID) -> int:
		return await self.store.count_pending_for_target(user_id)

	# --- Relationship reads -----------------------------------------------

	async def get_relationship(self, viewer_id: UUID, target_id: UUID) -> RelationshipStatus:
		target = policy.ensure_user(await self.users.get_user(target_id))
		if str(viewer_id) == str(target.id):
			return RelationshipStatus(user_id=target.id, is_self=True)
		pending = await self.store.find_request_for_pair(viewer_id, target.id)
		return RelationshipStatus(
			user_id=target.id,
			is_following=await self.store.edge_exists(viewer_id, target.id),
			is_followed_by=await self.store.edge_exists(target.id, viewer_id),
			has_pending_request=bool(pending and pending.is_pending),
		)

	async def _ensure_visible(self, user_id: UUID, viewer_id: UUID) -> UserNode:
		"""Private accounts expose their lists only to themselves and their followers."""
		user = policy.ensure_user(await self.users.get_user(user_id))
		if user.is_public or str(user.id) == str(viewer_id):
			return user
		if not await self.store.edge_exists(viewer_id, user.id):
			raise AccountPrivate()
		return user

	async def list_followers(self, user_id: UUID, viewer_id: UUID, page: int = 0, size: int = 20) -> UserCardPage:
		user = await self._ensure_visible(user_id, viewer_id)
		page, size = _window(page, size)
		items = await self.store.list_followers(user.id, limit=size, offset=page * size)
		total = await self.store.count_followers(user.id)
		return UserCardPage(items=[_to_card(item) for item in items], page=page, size=size, total=total)

	async def list_following(self, user_id: UUID, viewer_id: UUID, page: int = 0, size: int = 20) -> UserCardPage:
		user = await self._ensure_visible(user_id, viewer_id)
		page, size = _window(page, size)
		items = await self.store.list_following(user.id, limit=size, offset=page * size)
		total = await self.store.count_following(user.id)
		return UserCardPage(items=[_to_card(item) for item in items], page=page, size=size, total=total)


__all__ = ["FollowGraphService"]
