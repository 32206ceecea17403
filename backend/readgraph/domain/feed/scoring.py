"""Relevance scoring for feed candidates.

score = engagement × recency × relationship

	engagement   = 1 + likes×3 + comments×5 (+ saves×4 where the kind supports saves)
	recency      = 1 / (1 + age_hours / 24) ** 1.5, or 0.1 without a timestamp
	relationship = 2.0 when the viewer follows the author, else 1.0

All functions are pure; the caller supplies `now` once per request.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AbstractSet, Iterable
from uuid import UUID

from readgraph.domain.feed.models import EngageableContent, ScoredItem

LIKE_WEIGHT = 3.0
COMMENT_WEIGHT = 5.0
SAVE_WEIGHT = 4.0
HALF_LIFE_HOURS = 24.0
DECAY_POWER = 1.5
FOLLOWING_BOOST = 2.0
UNDATED_RECENCY = 0.1


def engagement_score(item: EngageableContent) -> float:
	value = 1.0 + item.like_count * LIKE_WEIGHT + item.comment_count * COMMENT_WEIGHT
	if item.kind.supports_saves:
		value += item.save_count * SAVE_WEIGHT
	return value


def _as_utc(value: datetime) -> datetime:
	return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def recency_multiplier(created_at: datetime | None, now: datetime) -> float:
	if created_at is None:
		return UNDATED_RECENCY
	age_hours = (_as_utc(now) - _as_utc(created_at)).total_seconds() / 3600.0
	age_hours = max(age_hours, 0.0)
	return 1.0 / (1.0 + age_hours / HALF_LIFE_HOURS) ** DECAY_POWER


def relationship_multiplier(author_id: UUID, following_ids: AbstractSet[UUID]) -> float:
	return FOLLOWING_BOOST if author_id in following_ids else 1.0


def score(item: EngageableContent, following_ids: AbstractSet[UUID], now: datetime) -> float:
	return (
		engagement_score(item)
		* recency_multiplier(item.created_at, now)
		* relationship_multiplier(item.author_id, following_ids)
	)


def _rank_key(item: ScoredItem) -> tuple[float, str]:
	return (-item.score, str(item.content.id))


def rank(
	candidates: Iterable[EngageableContent],
	following_ids: AbstractSet[UUID],
	now: datetime,
) -> list[ScoredItem]:
	"""Score and order candidates: score descending, then content id ascending."""
	scored = [ScoredItem(content=item, score=score(item, following_ids, now)) for item in candidates]
	scored.sort(key=_rank_key)
	return scored


__all__ = [
	"engagement_score",
	"rank",
	"recency_multiplier",
	"relationship_multiplier",
	"score",
]
