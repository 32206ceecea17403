"""REST API surface for follows, follow requests and follower lists."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from readgraph.domain.social.exceptions import (
	NotAuthorized,
	NotFound,
	RequestNotPending,
	SelfFollowNotAllowed,
	SocialError,
)
from readgraph.domain.social.schemas import (
	FollowRequestSummary,
	FollowResult,
	PendingCount,
	PendingRequestPage,
	RelationshipStatus,
	UserCardPage,
)
from readgraph.domain.social.service import FollowGraphService
from readgraph.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["follows"])
_service = FollowGraphService()


def _map_error(exc: SocialError) -> HTTPException:
	if isinstance(exc, SelfFollowNotAllowed):
		return HTTPException(status.HTTP_409_CONFLICT, detail=exc.reason)
	if isinstance(exc, NotAuthorized):
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=exc.reason)
	if isinstance(exc, RequestNotPending):
		return HTTPException(status.HTTP_410_GONE, detail=exc.reason)
	if isinstance(exc, NotFound):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)


def _viewer_id(auth_user: AuthenticatedUser) -> UUID:
	try:
		return UUID(str(auth_user.id))
	except ValueError:
		raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None


@router.post("/follows/{user_id}", response_model=FollowResult)
async def follow_user(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FollowResult:
	try:
		outcome = await _service.follow_user(_viewer_id(auth_user), user_id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return FollowResult(status=outcome.value)


@router.delete("/follows/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	try:
		await _service.unfollow_user(_viewer_id(auth_user), user_id)
	except SocialError as exc:
		raise _map_error(exc) from None


@router.delete("/follows/requests/outgoing/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_follow_request(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	await _service.cancel_follow_request(_viewer_id(auth_user), user_id)


@router.get("/follows/requests", response_model=PendingRequestPage)
async def list_pending_requests(
	page: int = Query(default=0, ge=0),
	size: int = Query(default=20, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PendingRequestPage:
	return await _service.list_pending_requests(_viewer_id(auth_user), page, size)


@router.get("/follows/requests/count", response_model=PendingCount)
async def count_pending_requests(auth_user: AuthenticatedUser = Depends(get_current_user)) -> PendingCount:
	return PendingCount(count=await _service.count_pending_requests(_viewer_id(auth_user)))


@router.post("/follows/requests/{request_id}/approve", response_model=FollowRequestSummary)
async def approve_follow_request(
	request_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FollowRequestSummary:
	try:
		return await _service.approve_follow_request(request_id, _viewer_id(auth_user))
	except SocialError as exc:
		raise _map_error(exc) from None


@router.post("/follows/requests/{request_id}/reject", response_model=FollowRequestSummary)
async def reject_follow_request(
	request_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FollowRequestSummary:
	try:
		return await _service.reject_follow_request(request_id, _viewer_id(auth_user))
	except SocialError as exc:
		raise _map_error(exc) from None


@router.get("/follows/{user_id}/relationship", response_model=RelationshipStatus)
async def get_relationship(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> RelationshipStatus:
	try:
		return await _service.get_relationship(_viewer_id(auth_user), user_id)
	except SocialError as exc:
		raise _map_error(exc) from None


@router.get("/users/{user_id}/followers", response_model=UserCardPage)
async def list_followers(
	user_id: UUID,
	page: int = Query(default=0, ge=0),
	size: int = Query(default=20, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> UserCardPage:
	try:
		return await _service.list_followers(user_id, _viewer_id(auth_user), page, size)
	except SocialError as exc:
		raise _map_error(exc) from None


@router.get("/users/{user_id}/following", response_model=UserCardPage)
async def list_following(
	user_id: UUID,
	page: int = Query(default=0, ge=0),
	size: int = Query(default=20, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> UserCardPage:
	try:
		return await _service.list_following(user_id, _viewer_id(auth_user), page, size)
	except SocialError as exc:
		raise _map_error(exc) from None
