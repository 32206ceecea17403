"""Exceptions raised by the feed services."""

from __future__ import annotations

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class FeedError(Exception):
	"""Base class for feed errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	reason: str = "feed_error"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class ContentNotFound(FeedError):
	status_code = status.HTTP_404_NOT_FOUND
	reason = "content_not_found"


class InvalidPageRequest(FeedError):
	"""Page index negative or page size outside the allowed window."""

	status_code = _HTTP_422
	reason = "invalid_page"
