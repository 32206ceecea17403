"""Feed endpoints for reviews and reflections."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from readgraph.domain.feed.exceptions import FeedError
from readgraph.domain.feed.models import ContentKind, FeedSort
from readgraph.domain.feed.schemas import FeedItem, FeedPage
from readgraph.domain.feed.service import FeedService
from readgraph.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/feeds", tags=["feeds"])
_service = FeedService()


def _to_http_error(exc: FeedError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.reason)


def _viewer_id(auth_user: AuthenticatedUser) -> UUID:
	try:
		return UUID(str(auth_user.id))
	except ValueError:
		raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None


@router.get("/{kind}/following", response_model=FeedPage)
async def following_feed(
	kind: ContentKind,
	page: int = Query(default=0),
	size: int = Query(default=20),
	sort: FeedSort = Query(default=FeedSort.RELEVANT),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FeedPage:
	try:
		return await _service.get_following_feed(_viewer_id(auth_user), kind, page, size, sort)
	except FeedError as exc:
		raise _to_http_error(exc) from None


@router.get("/{kind}/everyone", response_model=FeedPage)
async def everyone_feed(
	kind: ContentKind,
	page: int = Query(default=0),
	size: int = Query(default=20),
	sort: FeedSort = Query(default=FeedSort.RELEVANT),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FeedPage:
	try:
		return await _service.get_everyone_feed(_viewer_id(auth_user), kind, page, size, sort)
	except FeedError as exc:
		raise _to_http_error(exc) from None


@router.get("/{kind}/items/{content_id}", response_model=FeedItem)
async def feed_item(
	kind: ContentKind,
	content_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FeedItem:
	try:
		return await _service.get_item(_viewer_id(auth_user), kind, content_id)
	except FeedError as exc:
		raise _to_http_error(exc) from None
