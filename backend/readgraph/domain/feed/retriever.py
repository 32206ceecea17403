"""Candidate retrieval for ranked feeds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List
from uuid import UUID

from readgraph.domain.feed.models import ContentKind, EngageableContent, FeedTab
from readgraph.domain.feed.repo import ContentStore, PostgresContentStore
from readgraph.domain.social.repo import FollowGraphStore, PostgresFollowGraphStore
from readgraph.settings import settings


@dataclass(slots=True)
class CandidatePool:
	items: List[EngageableContent]
	following_ids: FrozenSet[UUID]
	pool_size: int


def merge_by_id(*groups: Iterable[EngageableContent]) -> List[EngageableContent]:
	"""Concatenate groups, keeping the first occurrence of each content id."""
	merged: dict[UUID, EngageableContent] = {}
	for group in groups:
		for item in group:
			merged.setdefault(item.id, item)
	return list(merged.values())


class CandidateRetriever:
	"""Pulls the bounded candidate set a feed page is ranked from."""

	def __init__(
		self,
		*,
		content: ContentStore | None = None,
		graph: FollowGraphStore | None = None,
		multiplier: int | None = None,
		cap: int | None = None,
		discovery_ratio: int | None = None,
		discovery_min: int | None = None,
	) -> None:
		self.content = content or PostgresContentStore()
		self.graph = graph or PostgresFollowGraphStore()
		self.multiplier = multiplier or settings.feed_candidate_multiplier
		self.cap = cap or settings.feed_candidate_cap
		self.discovery_ratio = discovery_ratio or settings.feed_discovery_ratio
		self.discovery_min = discovery_min or settings.feed_discovery_min

	def pool_size(self, size: int) -> int:
		return min(size * self.multiplier, self.cap)

	def discovery_count(self, pool_size: int) -> int:
		return max(pool_size // self.discovery_ratio, self.discovery_min)

	async def following_ids(self, viewer_id: UUID) -> FrozenSet[UUID]:
		return frozenset(await self.graph.list_following_ids(viewer_id))

	async def retrieve(self, viewer_id: UUID, tab: FeedTab, kind: ContentKind, size: int) -> CandidatePool:
		following = await self.following_ids(viewer_id)
		pool_size = self.pool_size(size)
		if tab is FeedTab.FOLLOWING:
			items = await self._following_candidates(kind, following, pool_size)
		else:
			items = await self.content.fetch_everyone(kind, sorted(following, key=str), limit=pool_size)
		return CandidatePool(items=items, following_ids=following, pool_size=pool_size)

	async def _following_candidates(
		self,
		kind: ContentKind,
		following: FrozenSet[UUID],
		pool_size: int,
	) -> List[EngageableContent]:
		if not following:
			return await self.content.fetch_public_popular(kind, limit=pool_size)
		recent = await self.content.fetch_recent_by_authors(kind, sorted(following, key=str), limit=pool_size)
		if not kind.discovery:
			return recent
		popular = await self.content.fetch_public_popular(kind, limit=self.discovery_count(pool_size))
		return merge_by_id(recent, popular)


__all__ = ["CandidatePool", "CandidateRetriever", "merge_by_id"]
