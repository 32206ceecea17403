"""Guard checks for follows and follow requests."""

from __future__ import annotations

from uuid import UUID

from readgraph.domain.social.exceptions import (
	NotAuthorized,
	RequestNotFound,
	RequestNotPending,
	SelfFollowNotAllowed,
	UserNotFound,
)
from readgraph.domain.social.models import FollowRequest, UserNode


def guard_not_self(user_id: UUID, target_id: UUID) -> None:
	if str(user_id) == str(target_id):
		raise SelfFollowNotAllowed()


def ensure_user(user: UserNode | None) -> UserNode:
	if user is None:
		raise UserNotFound()
	return user


def ensure_request(request: FollowRequest | None) -> FollowRequest:
	if request is None:
		raise RequestNotFound()
	return request


def ensure_can_respond(request: FollowRequest, approver_id: UUID) -> None:
	"""Only the target of a request may approve or reject it."""
	if str(request.target_id) != str(approver_id):
		raise NotAuthorized()


def ensure_pending(request: FollowRequest) -> None:
	if not request.is_pending:
		raise RequestNotPending()
