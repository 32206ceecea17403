"""Feed assembly: ranked ("relevant") and chronological ("recent") pages."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Sequence
from uuid import UUID

from readgraph.domain.feed import scoring
from readgraph.domain.feed.exceptions import ContentNotFound, InvalidPageRequest
from readgraph.domain.feed.models import ContentKind, EngageableContent, FeedSort, FeedTab, ScoredItem
from readgraph.domain.feed.repo import ContentStore
from readgraph.domain.feed.retriever import CandidateRetriever
from readgraph.domain.feed.schemas import FeedItem, FeedPage
from readgraph.obs import metrics as obs_metrics
from readgraph.settings import settings

logger = logging.getLogger(__name__)

_SCORE_AVG_WINDOW = 20


def _to_item(content: EngageableContent, score: float | None = None) -> FeedItem:
	return FeedItem(
		id=content.id,
		kind=content.kind.value,
		author_id=content.author_id,
		created_at=content.created_at,
		like_count=content.like_count,
		comment_count=content.comment_count,
		save_count=content.save_count,
		followers_only=content.followers_only,
		score=score,
	)


def paginate(ranked: Sequence[ScoredItem], page: int, size: int) -> list[ScoredItem]:
	offset = page * size
	return list(ranked[offset : offset + size])


class FeedService:
	def __init__(
		self,
		*,
		retriever: CandidateRetriever | None = None,
		content: ContentStore | None = None,
		max_page_size: int | None = None,
	) -> None:
		self.retriever = retriever or CandidateRetriever(content=content)
		self.content = content or self.retriever.content
		self.max_page_size = max_page_size or settings.feed_max_page_size

	def _validate(self, page: int, size: int) -> None:
		if page < 0 or size <= 0 or size > self.max_page_size:
			raise InvalidPageRequest()

	async def get_following_feed(
		self,
		viewer_id: UUID,
		kind: ContentKind,
		page: int = 0,
		size: int = 20,
		sort: FeedSort = FeedSort.RELEVANT,
		*,
		now: datetime | None = None,
	) -> FeedPage:
		return await self._feed(viewer_id, FeedTab.FOLLOWING, kind, page, size, sort, now)

	async def get_everyone_feed(
		self,
		viewer_id: UUID,
		kind: ContentKind,
		page: int = 0,
		size: int = 20,
		sort: FeedSort = FeedSort.RELEVANT,
		*,
		now: datetime | None = None,
	) -> FeedPage:
		return await self._feed(viewer_id, FeedTab.EVERYONE, kind, page, size, sort, now)

	async def _feed(
		self,
		viewer_id: UUID,
		tab: FeedTab,
		kind: ContentKind,
		page: int,
		size: int,
		sort: FeedSort,
		now: datetime | None,
	) -> FeedPage:
		self._validate(page, size)
		if sort is FeedSort.RECENT:
			return await self._recent(viewer_id, tab, kind, page, size)
		return await self._relevant(viewer_id, tab, kind, page, size, now or datetime.now(timezone.utc))

	async def _relevant(
		self,
		viewer_id: UUID,
		tab: FeedTab,
		kind: ContentKind,
		page: int,
		size: int,
		now: datetime,
	) -> FeedPage:
		pool = await self.retriever.retrieve(viewer_id, tab, kind, size)

		start = perf_counter()
		ranked = scoring.rank(pool.items, pool.following_ids, now)
		elapsed_ms = (perf_counter() - start) * 1000.0

		top = ranked[:_SCORE_AVG_WINDOW]
		top_avg = sum(item.score for item in top) / len(top) if top else None
		obs_metrics.observe_feed_rank(kind.value, tab.value, len(ranked), elapsed_ms, top_avg)
		logger.debug(
			"feed.ranked",
			extra={"kind": kind.value, "tab": tab.value, "candidates": len(ranked), "elapsed_ms": round(elapsed_ms, 3)},
		)

		window = paginate(ranked, page, size)
		return FeedPage(
			items=[_to_item(item.content, item.score) for item in window],
			page=page,
			size=size,
			total=len(ranked),
			total_is_estimate=True,
			sort=FeedSort.RELEVANT.value,
		)

	async def _recent(self, viewer_id: UUID, tab: FeedTab, kind: ContentKind, page: int, size: int) -> FeedPage:
		following = sorted(await self.retriever.following_ids(viewer_id), key=str)
		offset = page * size
		if tab is FeedTab.EVERYONE:
			items = await self.content.fetch_everyone(kind, following, limit=size, offset=offset)
			total = await self.content.count_everyone(kind, following)
		elif following:
			items = await self.content.fetch_recent_by_authors(kind, following, limit=size, offset=offset)
			total = await self.content.count_by_authors(kind, following)
		else:
			items = await self.content.fetch_public_recent(kind, limit=size, offset=offset)
			total = await self.content.count_public(kind)
		return FeedPage(
			items=[_to_item(item) for item in items],
			page=page,
			size=size,
			total=total,
			total_is_estimate=False,
			sort=FeedSort.RECENT.value,
		)

	async def get_item(self, viewer_id: UUID, kind: ContentKind, content_id: UUID) -> FeedItem:
		"""Single item lookup with the same visibility rule as the everyone feed."""
		content = await self.content.fetch_by_id(kind, content_id)
		if content is None:
			raise ContentNotFound()
		if content.is_discoverable or str(content.author_id) == str(viewer_id):
			return _to_item(content)
		if content.author_id not in await self.retriever.following_ids(viewer_id):
			raise ContentNotFound()
		return _to_item(content)


__all__ = ["FeedService", "paginate"]
