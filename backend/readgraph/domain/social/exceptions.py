"""Domain-level exceptions for the follow graph."""

from __future__ import annotations


class SocialError(Exception):
	"""Base class for follow graph errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NotFound(SocialError):
	reason = "not_found"


class UserNotFound(NotFound):
	reason = "user_not_found"


class RequestNotFound(NotFound):
	reason = "request_not_found"


class SelfFollowNotAllowed(SocialError):
	reason = "self_follow"


class NotAuthorized(SocialError):
	reason = "not_authorized"


class AccountPrivate(NotAuthorized):
	reason = "account_private"


class RequestNotPending(SocialError):
	reason = "not_pending"
