"""Storage collaborators for the follow graph.

`FollowGraphStore` and `UserDirectory` are the seams the service talks to;
the Postgres implementations below are the production bindings. Counter
columns on `users` are only ever changed with in-place arithmetic so
concurrent follows cannot lose updates.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence
from uuid import UUID, uuid4

from readgraph.domain.social.models import FollowRequest, FollowRequestStatus, UserNode
from readgraph.infra.postgres import get_pool


class FollowGraphStore(Protocol):
	async def create_edge(self, follower_id: UUID, following_id: UUID) -> bool: ...

	async def delete_edge(self, follower_id: UUID, following_id: UUID) -> bool: ...

	async def edge_exists(self, follower_id: UUID, following_id: UUID) -> bool: ...

	async def list_follower_ids(
		self,
		user_id: UUID,
		*,
		limit: Optional[int] = None,
		after: Optional[UUID] = None,
	) -> list[UUID]: ...

	async def list_following_ids(self, user_id: UUID) -> list[UUID]: ...

	async def count_followers(self, user_id: UUID) -> int: ...

	async def count_following(self, user_id: UUID) -> int: ...

	async def list_followers(self, user_id: UUID, *, limit: int, offset: int) -> list[UserNode]: ...

	async def list_following(self, user_id: UUID, *, limit: int, offset: int) -> list[UserNode]: ...

	async def create_request(self, requester_id: UUID, target_id: UUID) -> Optional[FollowRequest]: ...

	async def approve_request(self, request_id: UUID, *, responded_at: datetime) -> Optional[FollowRequest]: ...

	async def update_request_status(
		self,
		request_id: UUID,
		status: FollowRequestStatus,
		*,
		responded_at: datetime,
	) -> Optional[FollowRequest]: ...

	async def find_request(self, request_id: UUID) -> Optional[FollowRequest]: ...

	async def find_request_for_pair(self, requester_id: UUID, target_id: UUID) -> Optional[FollowRequest]: ...

	async def delete_request(self, requester_id: UUID, target_id: UUID) -> int: ...

	async def list_pending_for_target(
		self,
		target_id: UUID,
		*,
		limit: int,
		offset: int,
	) -> list[tuple[FollowRequest, UserNode]]: ...

	async def count_pending_for_target(self, target_id: UUID) -> int: ...


class UserDirectory(Protocol):
	async def get_user(self, user_id: UUID) -> Optional[UserNode]: ...

	async def is_public(self, user_id: UUID) -> bool: ...

	async def exists(self, user_id: UUID) -> bool: ...

	async def find_ids_by_handles(self, handles: Iterable[str]) -> dict[str, UUID]: ...


_USER_COLUMNS = "u.id, u.handle, u.display_name, u.is_public, u.follower_count, u.following_count"


class PostgresFollowGraphStore:
	"""Thin data-access layer around asyncpg for follows and follow requests."""

	# --- Edges ------------------------------------------------------------

	async def create_edge(self, follower_id: UUID, following_id: UUID) -> bool:
		"""Insert the edge, bump both counters and clear a pending request for the pair.

		Returns False when the edge already existed; counters are untouched then.
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow(
					"""
					INSERT INTO follows (follower_id, following_id)
					VALUES ($1, $2)
					ON CONFLICT (follower_id, following_id) DO NOTHING
					RETURNING created_at
					""",
					follower_id,
					following_id,
				)
				if row is not None:
					await conn.execute(
						"UPDATE users SET follower_count = follower_count + 1 WHERE id = $1",
						following_id,
					)
					await conn.execute(
						"UPDATE users SET following_count = following_count + 1 WHERE id = $1",
						follower_id,
					)
				await conn.execute(
					"""
					DELETE FROM follow_requests
					WHERE requester_id = $1 AND target_id = $2 AND status = 'pending'
					""",
					follower_id,
					following_id,
				)
		return row is not None

	async def delete_edge(self, follower_id: UUID, following_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"DELETE FROM follows WHERE follower_id = $1 AND following_id = $2",
					follower_id,
					following_id,
				)
				deleted = result.endswith(" 1")
				if deleted:
					await conn.execute(
						"UPDATE users SET follower_count = GREATEST(follower_count - 1, 0) WHERE id = $1",
						following_id,
					)
					await conn.execute(
						"UPDATE users SET following_count = GREATEST(following_count - 1, 0) WHERE id = $1",
						follower_id,
					)
		return deleted

	async def edge_exists(self, follower_id: UUID, following_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT 1 FROM follows WHERE follower_id = $1 AND following_id = $2",
				follower_id,
				following_id,
			)
		return row is not None

	async def list_follower_ids(
		self,
		user_id: UUID,
		*,
		limit: Optional[int] = None,
		after: Optional[UUID] = None,
	) -> list[UUID]:
		"""Follower ids ordered by id, keyset-paginated with `after`."""
		params: list[object] = [user_id]
		query = "SELECT follower_id FROM follows WHERE following_id = $1"
		if after is not None:
			params.append(after)
			query += f" AND follower_id > ${len(params)}"
		query += " ORDER BY follower_id"
		if limit is not None:
			params.append(limit)
			query += f" LIMIT ${len(params)}"
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(query, *params)
		return [UUID(str(row["follower_id"])) for row in rows]

	async def list_following_ids(self, user_id: UUID) -> list[UUID]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch("SELECT following_id FROM follows WHERE follower_id = $1", user_id)
		return [UUID(str(row["following_id"])) for row in rows]

	async def count_followers(self, user_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval("SELECT COUNT(*) FROM follows WHERE following_id = $1", user_id)
		return int(value or 0)

	async def count_following(self, user_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval("SELECT COUNT(*) FROM follows WHERE follower_id = $1", user_id)
		return int(value or 0)

	async def list_followers(self, user_id: UUID, *, limit: int, offset: int) -> list[UserNode]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_USER_COLUMNS}
				FROM follows f
				JOIN users u ON u.id = f.follower_id
				WHERE f.following_id = $1 AND u.deleted_at IS NULL
				ORDER BY f.created_at DESC, u.id
				LIMIT $2 OFFSET $3
				""",
				user_id,
				limit,
				offset,
			)
		return [UserNode.from_record(dict(row)) for row in rows]

	async def list_following(self, user_id: UUID, *, limit: int, offset: int) -> list[UserNode]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_USER_COLUMNS}
				FROM follows f
				JOIN users u ON u.id = f.following_id
				WHERE f.follower_id = $1 AND u.deleted_at IS NULL
				ORDER BY f.created_at DESC, u.id
				LIMIT $2 OFFSET $3
				""",
				user_id,
				limit,
				offset,
			)
		return [UserNode.from_record(dict(row)) for row in rows]

	# --- Requests ---------------------------------------------------------

	async def create_request(self, requester_id: UUID, target_id: UUID) -> Optional[FollowRequest]:
		"""Create a pending request, reusing a terminal row for the pair.

		Returns None when a pending request already exists, which is how a
		concurrent duplicate follow attempt is detected.
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO follow_requests (id, requester_id, target_id, status)
				VALUES ($1, $2, $3, 'pending')
				ON CONFLICT (requester_id, target_id)
				DO UPDATE SET status = 'pending', created_at = NOW(), responded_at = NULL
				WHERE follow_requests.status <> 'pending'
				RETURNING *
				""",
				uuid4(),
				requester_id,
				target_id,
			)
		return FollowRequest.from_record(dict(row)) if row else None

	async def approve_request(self, request_id: UUID, *, responded_at: datetime) -> Optional[FollowRequest]:
		"""Mark a pending request approved and create its edge in one transaction."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow(
					"""
					UPDATE follow_requests
					SET status = 'approved', responded_at = $2
					WHERE id = $1 AND status = 'pending'
					RETURNING *
					""",
					request_id,
					responded_at,
				)
				if row is None:
					return None
				inserted = await conn.fetchrow(
					"""
					INSERT INTO follows (follower_id, following_id)
					VALUES ($1, $2)
					ON CONFLICT (follower_id, following_id) DO NOTHING
					RETURNING created_at
					""",
					row["requester_id"],
					row["target_id"],
				)
				if inserted is not None:
					await conn.execute(
						"UPDATE users SET follower_count = follower_count + 1 WHERE id = $1",
						row["target_id"],
					)
					await conn.execute(
						"UPDATE users SET following_count = following_count + 1 WHERE id = $1",
						row["requester_id"],
					)
		return FollowRequest.from_record(dict(row))

	async def update_request_status(
		self,
		request_id: UUID,
		status: FollowRequestStatus,
		*,
		responded_at: datetime,
	) -> Optional[FollowRequest]:
		"""Move a pending request to `status`; None if it was no longer pending."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE follow_requests
				SET status = $2, responded_at = $3
				WHERE id = $1 AND status = 'pending'
				RETURNING *
				""",
				request_id,
				status.value,
				responded_at,
			)
		return FollowRequest.from_record(dict(row)) if row else None

	async def find_request(self, request_id: UUID) -> Optional[FollowRequest]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM follow_requests WHERE id = $1", request_id)
		return FollowRequest.from_record(dict(row)) if row else None

	async def find_request_for_pair(self, requester_id: UUID, target_id: UUID) -> Optional[FollowRequest]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT * FROM follow_requests WHERE requester_id = $1 AND target_id = $2",
				requester_id,
				target_id,
			)
		return FollowRequest.from_record(dict(row)) if row else None

	async def delete_request(self, requester_id: UUID, target_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"DELETE FROM follow_requests WHERE requester_id = $1 AND target_id = $2",
				requester_id,
				target_id,
			)
		return int(result.split()[-1])

	async def list_pending_for_target(
		self,
		target_id: UUID,
		*,
		limit: int,
		offset: int,
	) -> list[tuple[FollowRequest, UserNode]]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT fr.id AS request_id, fr.requester_id, fr.target_id, fr.status,
					fr.created_at AS request_created_at, fr.responded_at,
					{_USER_COLUMNS}
				FROM follow_requests fr
				JOIN users u ON u.id = fr.requester_id
				WHERE fr.target_id = $1 AND fr.status = 'pending'
				ORDER BY fr.created_at DESC, fr.id DESC
				LIMIT $2 OFFSET $3
				""",
				target_id,
				limit,
				offset,
			)
		return [_pending_row(dict(row)) for row in rows]

	async def count_pending_for_target(self, target_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval(
				"SELECT COUNT(*) FROM follow_requests WHERE target_id = $1 AND status = 'pending'",
				target_id,
			)
		return int(value or 0)


def _pending_row(record: dict) -> tuple[FollowRequest, UserNode]:
	request = FollowRequest(
		id=UUID(str(record["request_id"])),
		requester_id=UUID(str(record["requester_id"])),
		target_id=UUID(str(record["target_id"])),
		status=FollowRequestStatus(record["status"]),
		created_at=record["request_created_at"],
		responded_at=record.get("responded_at"),
	)
	return request, UserNode.from_record(record)


class PostgresUserDirectory:
	"""Read-only lookups against the account system's `users` table."""

	async def get_user(self, user_id: UUID) -> Optional[UserNode]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				f"SELECT {_USER_COLUMNS} FROM users u WHERE u.id = $1 AND u.deleted_at IS NULL",
				user_id,
			)
		return UserNode.from_record(dict(row)) if row else None

	async def is_public(self, user_id: UUID) -> bool:
		user = await self.get_user(user_id)
		return bool(user and user.is_public)

	async def exists(self, user_id: UUID) -> bool:
		return await self.get_user(user_id) is not None

	async def find_ids_by_handles(self, handles: Iterable[str]) -> dict[str, UUID]:
		wanted: Sequence[str] = list(dict.fromkeys(handles))
		if not wanted:
			return {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT id, handle FROM users WHERE handle = ANY($1::text[]) AND deleted_at IS NULL",
				list(wanted),
			)
		return {row["handle"]: UUID(str(row["id"])) for row in rows}


__all__ = [
	"FollowGraphStore",
	"UserDirectory",
	"PostgresFollowGraphStore",
	"PostgresUserDirectory",
]
