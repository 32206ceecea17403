import asyncio
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from readgraph.domain.feed.models import ContentKind, EngageableContent
from readgraph.domain.feed.retriever import CandidateRetriever
from readgraph.domain.feed.service import FeedService
from readgraph.domain.notifications.dispatcher import NotificationDispatcher
from readgraph.domain.social.models import FollowRequest, FollowRequestStatus, UserNode
from readgraph.domain.social.service import FollowGraphService
from readgraph.infra import postgres
from readgraph.infra.redis import redis_client, set_redis_client
from readgraph.main import app
from readgraph.settings import settings


def _now() -> datetime:
	return datetime.now(timezone.utc)


class InMemoryUsers:
	"""UserDirectory backed by a dict; shares UserNode objects with the graph store."""

	def __init__(self) -> None:
		self.users: dict[UUID, UserNode] = {}

	def add(self, handle: str, *, is_public: bool = True, display_name: str | None = None) -> UserNode:
		user = UserNode(id=uuid4(), handle=handle, display_name=display_name, is_public=is_public)
		self.users[user.id] = user
		return user

	async def get_user(self, user_id):
		user = self.users.get(user_id)
		return replace(user) if user else None

	async def is_public(self, user_id):
		user = self.users.get(user_id)
		return bool(user and user.is_public)

	async def exists(self, user_id):
		return user_id in self.users

	async def find_ids_by_handles(self, handles):
		wanted = set(handles)
		return {user.handle: user.id for user in self.users.values() if user.handle in wanted}


class InMemoryGraphStore:
	"""FollowGraphStore with the same atomicity as the SQL statements.

	Each method yields once before touching state so concurrent callers
	interleave the way they would against a database.
	"""

	def __init__(self, users: InMemoryUsers) -> None:
		self.users = users
		self.edges: dict[tuple[UUID, UUID], datetime] = {}
		self.requests: dict[UUID, FollowRequest] = {}

	def _bump(self, follower_id, following_id, delta):
		follower = self.users.users.get(follower_id)
		following = self.users.users.get(following_id)
		if following is not None:
			following.follower_count = max(following.follower_count + delta, 0)
		if follower is not None:
			follower.following_count = max(follower.following_count + delta, 0)

	def _pair(self, requester_id, target_id):
		for request in self.requests.values():
			if request.requester_id == requester_id and request.target_id == target_id:
				return request
		return None

	def _insert_edge(self, follower_id, following_id) -> bool:
		if (follower_id, following_id) in self.edges:
			return False
		self.edges[(follower_id, following_id)] = _now()
		self._bump(follower_id, following_id, 1)
		return True

	async def create_edge(self, follower_id, following_id):
		await asyncio.sleep(0)
		created = self._insert_edge(follower_id, following_id)
		pending = self._pair(follower_id, following_id)
		if pending is not None and pending.is_pending:
			del self.requests[pending.id]
		return created

	async def delete_edge(self, follower_id, following_id):
		await asyncio.sleep(0)
		if self.edges.pop((follower_id, following_id), None) is None:
			return False
		self._bump(follower_id, following_id, -1)
		return True

	async def edge_exists(self, follower_id, following_id):
		await asyncio.sleep(0)
		return (follower_id, following_id) in self.edges

	async def list_follower_ids(self, user_id, *, limit=None, after=None):
		ids = sorted(follower for follower, following in self.edges if following == user_id)
		if after is not None:
			ids = [value for value in ids if value > after]
		return ids[:limit] if limit is not None else ids

	async def list_following_ids(self, user_id):
		return [following for follower, following in self.edges if follower == user_id]

	async def count_followers(self, user_id):
		return sum(1 for _, following in self.edges if following == user_id)

	async def count_following(self, user_id):
		return sum(1 for follower, _ in self.edges if follower == user_id)

	async def list_followers(self, user_id, *, limit, offset):
		ids = [follower for follower, following in self.edges if following == user_id]
		return [replace(self.users.users[value]) for value in ids[offset : offset + limit]]

	async def list_following(self, user_id, *, limit, offset):
		ids = [following for follower, following in self.edges if follower == user_id]
		return [replace(self.users.users[value]) for value in ids[offset : offset + limit]]

	async def create_request(self, requester_id, target_id):
		await asyncio.sleep(0)
		existing = self._pair(requester_id, target_id)
		if existing is not None:
			if existing.is_pending:
				return None
			existing.status = FollowRequestStatus.PENDING
			existing.created_at = _now()
			existing.responded_at = None
			return replace(existing)
		request = FollowRequest(
			id=uuid4(),
			requester_id=requester_id,
			target_id=target_id,
			status=FollowRequestStatus.PENDING,
			created_at=_now(),
		)
		self.requests[request.id] = request
		return replace(request)

	async def approve_request(self, request_id, *, responded_at):
		await asyncio.sleep(0)
		request = self.requests.get(request_id)
		if request is None or not request.is_pending:
			return None
		request.status = FollowRequestStatus.APPROVED
		request.responded_at = responded_at
		self._insert_edge(request.requester_id, request.target_id)
		return replace(request)

	async def update_request_status(self, request_id, status, *, responded_at):
		await asyncio.sleep(0)
		request = self.requests.get(request_id)
		if request is None or not request.is_pending:
			return None
		request.status = status
		request.responded_at = responded_at
		return replace(request)

	async def find_request(self, request_id):
		request = self.requests.get(request_id)
		return replace(request) if request else None

	async def find_request_for_pair(self, requester_id, target_id):
		await asyncio.sleep(0)
		request = self._pair(requester_id, target_id)
		return replace(request) if request else None

	async def delete_request(self, requester_id, target_id):
		request = self._pair(requester_id, target_id)
		if request is None:
			return 0
		del self.requests[request.id]
		return 1

	def _pending_for(self, target_id):
		pending = [r for r in self.requests.values() if r.target_id == target_id and r.is_pending]
		return sorted(pending, key=lambda r: r.created_at, reverse=True)

	async def list_pending_for_target(self, target_id, *, limit, offset):
		rows = self._pending_for(target_id)[offset : offset + limit]
		return [(replace(r), replace(self.users.users[r.requester_id])) for r in rows]

	async def count_pending_for_target(self, target_id):
		return len(self._pending_for(target_id))


class InMemoryContentStore:
	def __init__(self) -> None:
		self.items: list[EngageableContent] = []

	def add(self, author: UserNode, kind: ContentKind = ContentKind.REVIEW, **fields) -> EngageableContent:
		item = EngageableContent(
			id=fields.pop("id", uuid4()),
			kind=kind,
			author_id=author.id,
			created_at=fields.pop("created_at", _now()),
			author_is_public=author.is_public,
			**fields,
		)
		self.items.append(item)
		return item

	def _of(self, kind):
		return [item for item in self.items if item.kind is kind]

	@staticmethod
	def _newest(items):
		floor = datetime.min.replace(tzinfo=timezone.utc)
		return sorted(items, key=lambda item: (item.created_at or floor), reverse=True)

	def _everyone(self, kind, following_ids):
		following = set(following_ids)
		return [i for i in self._of(kind) if i.is_discoverable or i.author_id in following]

	async def fetch_recent_by_authors(self, kind, author_ids, *, limit, offset=0):
		authors = set(author_ids)
		items = self._newest([i for i in self._of(kind) if i.author_id in authors])
		return items[offset : offset + limit]

	async def fetch_everyone(self, kind, following_ids, *, limit, offset=0):
		return self._newest(self._everyone(kind, following_ids))[offset : offset + limit]

	async def fetch_public_popular(self, kind, *, limit):
		items = self._newest([i for i in self._of(kind) if i.is_discoverable])
		return sorted(items, key=lambda i: i.like_count, reverse=True)[:limit]

	async def fetch_public_recent(self, kind, *, limit, offset=0):
		return self._newest([i for i in self._of(kind) if i.is_discoverable])[offset : offset + limit]

	async def fetch_by_id(self, kind, content_id):
		return next((i for i in self._of(kind) if i.id == content_id), None)

	async def count_by_authors(self, kind, author_ids):
		authors = set(author_ids)
		return sum(1 for i in self._of(kind) if i.author_id in authors)

	async def count_everyone(self, kind, following_ids):
		return len(self._everyone(kind, following_ids))

	async def count_public(self, kind):
		return sum(1 for i in self._of(kind) if i.is_discoverable)


class RecordingSink:
	def __init__(self) -> None:
		self.rows: list[dict] = []
		self.batches: list[int] = []
		self.fail = False

	async def append(self, recipient_id, actor_id, type, refs, message):
		if self.fail:
			raise RuntimeError("sink unavailable")
		self.rows.append(
			{"recipient_id": recipient_id, "actor_id": actor_id, "type": type, "refs": refs, "message": message}
		)
		return None

	async def append_many(self, recipient_ids, actor_id, type, refs, message):
		if self.fail:
			raise RuntimeError("sink unavailable")
		for recipient_id in recipient_ids:
			self.rows.append(
				{"recipient_id": recipient_id, "actor_id": actor_id, "type": type, "refs": refs, "message": message}
			)
		self.batches.append(len(recipient_ids))
		return len(recipient_ids)

	def of_type(self, type):
		return [row for row in self.rows if row["type"] is type]


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via X-User-Id, which is only accepted in dev mode."""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest.fixture
def users():
	return InMemoryUsers()


@pytest.fixture
def graph(users):
	return InMemoryGraphStore(users)


@pytest.fixture
def sink():
	return RecordingSink()


@pytest.fixture
def content():
	return InMemoryContentStore()


@pytest.fixture
def dispatcher(sink, users, graph):
	return NotificationDispatcher(sink=sink, users=users, graph=graph, fanout_async=False, batch_size=2)


@pytest.fixture
def follow_service(graph, users, dispatcher):
	return FollowGraphService(store=graph, users=users, dispatcher=dispatcher)


@pytest.fixture
def feed_service(content, graph):
	retriever = CandidateRetriever(content=content, graph=graph)
	return FeedService(retriever=retriever, content=content)


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
