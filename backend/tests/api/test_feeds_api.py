from uuid import uuid4

import pytest

from readgraph.api import feeds
from readgraph.domain.feed.models import ContentKind


@pytest.fixture
def wired(monkeypatch, feed_service):
    monkeypatch.setattr(feeds, "_service", feed_service)
    return feed_service


@pytest.mark.asyncio
async def test_everyone_feed_relevant(wired, users, content, api_client):
    viewer = users.add("viewer")
    author = users.add("author")
    quiet = content.add(author)
    loud = content.add(author, like_count=10)

    response = await api_client.get("/feeds/review/everyone", headers={"X-User-Id": str(viewer.id)})

    assert response.status_code == 200
    body = response.json()
    assert [item["id"] for item in body["items"]] == [str(loud.id), str(quiet.id)]
    assert body["total"] == 2
    assert body["total_is_estimate"] is True
    assert body["sort"] == "relevant"


@pytest.mark.asyncio
async def test_following_feed_recent(wired, users, content, graph, api_client):
    viewer = users.add("viewer")
    friend = users.add("friend")
    await graph.create_edge(viewer.id, friend.id)
    item = content.add(friend, ContentKind.REFLECTION, save_count=3)

    response = await api_client.get(
        "/feeds/reflection/following",
        params={"sort": "recent", "size": 5},
        headers={"X-User-Id": str(viewer.id)},
    )

    body = response.json()
    assert response.status_code == 200
    assert [entry["id"] for entry in body["items"]] == [str(item.id)]
    assert body["items"][0]["save_count"] == 3
    assert body["total_is_estimate"] is False


@pytest.mark.asyncio
async def test_invalid_page_is_422(wired, users, api_client):
    viewer = users.add("viewer")
    response = await api_client.get(
        "/feeds/review/following",
        params={"page": -1},
        headers={"X-User-Id": str(viewer.id)},
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "invalid_page"
    assert "request_id" in response.json()


@pytest.mark.asyncio
async def test_unknown_kind_is_validation_error(wired, users, api_client):
    viewer = users.add("viewer")
    response = await api_client.get("/feeds/podcast/everyone", headers={"X-User-Id": str(viewer.id)})
    assert response.status_code == 422
    assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_missing_item_is_404(wired, users, api_client):
    viewer = users.add("viewer")
    response = await api_client.get(f"/feeds/review/items/{uuid4()}", headers={"X-User-Id": str(viewer.id)})
    assert response.status_code == 404
    assert response.json()["detail"] == "content_not_found"
