"""Read access to engageable content (reviews and reflections)."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence
from uuid import UUID

from readgraph.domain.feed.models import ContentKind, EngageableContent
from readgraph.infra.postgres import get_pool


class ContentStore(Protocol):
	async def fetch_recent_by_authors(
		self,
		kind: ContentKind,
		author_ids: Sequence[UUID],
		*,
		limit: int,
		offset: int = 0,
	) -> list[EngageableContent]: ...

	async def fetch_everyone(
		self,
		kind: ContentKind,
		following_ids: Sequence[UUID],
		*,
		limit: int,
		offset: int = 0,
	) -> list[EngageableContent]: ...

	async def fetch_public_popular(self, kind: ContentKind, *, limit: int) -> list[EngageableContent]: ...

	async def fetch_public_recent(self, kind: ContentKind, *, limit: int, offset: int = 0) -> list[EngageableContent]: ...

	async def fetch_by_id(self, kind: ContentKind, content_id: UUID) -> Optional[EngageableContent]: ...

	async def count_by_authors(self, kind: ContentKind, author_ids: Sequence[UUID]) -> int: ...

	async def count_everyone(self, kind: ContentKind, following_ids: Sequence[UUID]) -> int: ...

	async def count_public(self, kind: ContentKind) -> int: ...


def _select(kind: ContentKind) -> str:
	if kind.supports_saves:
		extra = "c.save_count, c.followers_only"
	else:
		extra = "0 AS save_count, FALSE AS followers_only"
	return f"""
		SELECT c.id, c.author_id, c.created_at, c.like_count, c.comment_count, {extra},
			u.is_public AS author_is_public
		FROM {kind.table} c
		JOIN users u ON u.id = c.author_id
		WHERE c.deleted_at IS NULL AND u.deleted_at IS NULL
	"""


def _public_clause(kind: ContentKind) -> str:
	if kind.supports_saves:
		return "(u.is_public AND NOT c.followers_only)"
	return "u.is_public"


_NEWEST_FIRST = "ORDER BY c.created_at DESC NULLS LAST, c.id"


class PostgresContentStore:
	"""asyncpg-backed content queries. Each kind lives in its own table."""

	async def _fetch(self, kind: ContentKind, query: str, *params: object) -> list[EngageableContent]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(query, *params)
		return [EngageableContent.from_record(dict(row), kind) for row in rows]

	async def _count(self, query: str, *params: object) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval(query, *params)
		return int(value or 0)

	async def fetch_recent_by_authors(
		self,
		kind: ContentKind,
		author_ids: Sequence[UUID],
		*,
		limit: int,
		offset: int = 0,
	) -> list[EngageableContent]:
		if not author_ids:
			return []
		query = f"{_select(kind)} AND c.author_id = ANY($1::uuid[]) {_NEWEST_FIRST} LIMIT $2 OFFSET $3"
		return await self._fetch(kind, query, list(author_ids), limit, offset)

	async def fetch_everyone(
		self,
		kind: ContentKind,
		following_ids: Sequence[UUID],
		*,
		limit: int,
		offset: int = 0,
	) -> list[EngageableContent]:
		query = (
			f"{_select(kind)} AND ({_public_clause(kind)} OR c.author_id = ANY($1::uuid[])) "
			f"{_NEWEST_FIRST} LIMIT $2 OFFSET $3"
		)
		return await self._fetch(kind, query, list(following_ids), limit, offset)

	async def fetch_public_popular(self, kind: ContentKind, *, limit: int) -> list[EngageableContent]:
		query = (
			f"{_select(kind)} AND {_public_clause(kind)} "
			"ORDER BY c.like_count DESC, c.created_at DESC NULLS LAST, c.id LIMIT $1"
		)
		return await self._fetch(kind, query, limit)

	async def fetch_public_recent(self, kind: ContentKind, *, limit: int, offset: int = 0) -> list[EngageableContent]:
		query = f"{_select(kind)} AND {_public_clause(kind)} {_NEWEST_FIRST} LIMIT $1 OFFSET $2"
		return await self._fetch(kind, query, limit, offset)

	async def fetch_by_id(self, kind: ContentKind, content_id: UUID) -> Optional[EngageableContent]:
		items = await self._fetch(kind, f"{_select(kind)} AND c.id = $1", content_id)
		return items[0] if items else None

	async def count_by_authors(self, kind: ContentKind, author_ids: Sequence[UUID]) -> int:
		if not author_ids:
			return 0
		return await self._count(
			f"""
			SELECT COUNT(*) FROM {kind.table} c
			JOIN users u ON u.id = c.author_id
			WHERE c.deleted_at IS NULL AND u.deleted_at IS NULL AND c.author_id = ANY($1::uuid[])
			""",
			list(author_ids),
		)

	async def count_everyone(self, kind: ContentKind, following_ids: Sequence[UUID]) -> int:
		return await self._count(
			f"""
			SELECT COUNT(*) FROM {kind.table} c
			JOIN users u ON u.id = c.author_id
			WHERE c.deleted_at IS NULL AND u.deleted_at IS NULL
				AND ({_public_clause(kind)} OR c.author_id = ANY($1::uuid[]))
			""",
			list(following_ids),
		)

	async def count_public(self, kind: ContentKind) -> int:
		return await self._count(
			f"""
			SELECT COUNT(*) FROM {kind.table} c
			JOIN users u ON u.id = c.author_id
			WHERE c.deleted_at IS NULL AND u.deleted_at IS NULL AND {_public_clause(kind)}
			"""
		)


__all__ = ["ContentStore", "PostgresContentStore"]
