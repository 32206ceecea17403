from uuid import uuid4

import pytest

from readgraph.api import follows
from readgraph.infra import jwt as jwt_helper
from readgraph.settings import settings


@pytest.fixture
def wired(monkeypatch, follow_service):
    monkeypatch.setattr(follows, "_service", follow_service)
    return follow_service


def _as(user) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


@pytest.mark.asyncio
async def test_follow_public_user(wired, users, api_client):
    ada = users.add("ada")
    bo = users.add("bo")

    response = await api_client.post(f"/follows/{bo.id}", headers=_as(ada))

    assert response.status_code == 200
    assert response.json() == {"status": "followed"}
    assert response.headers.get("X-Request-Id")


@pytest.mark.asyncio
async def test_self_follow_conflict_includes_request_id(wired, users, api_client):
    ada = users.add("ada")

    response = await api_client.post(
        f"/follows/{ada.id}",
        headers={**_as(ada), "X-Request-Id": "req-123"},
    )

    assert response.status_code == 409
    assert response.json() == {"detail": "self_follow", "request_id": "req-123"}


@pytest.mark.asyncio
async def test_follow_unknown_user_is_404(wired, users, api_client):
    ada = users.add("ada")
    response = await api_client.post(f"/follows/{uuid4()}", headers=_as(ada))
    assert response.status_code == 404
    assert response.json()["detail"] == "user_not_found"


@pytest.mark.asyncio
async def test_request_approve_flow(wired, users, graph, api_client):
    ada = users.add("ada")
    cy = users.add("cy", is_public=False)

    requested = await api_client.post(f"/follows/{cy.id}", headers=_as(ada))
    assert requested.json() == {"status": "requested"}

    count = await api_client.get("/follows/requests/count", headers=_as(cy))
    assert count.json() == {"count": 1}

    listing = await api_client.get("/follows/requests", params={"page": 0, "size": 5}, headers=_as(cy))
    body = listing.json()
    assert body["total"] == 1
    request_id = body["items"][0]["id"]
    assert body["items"][0]["requester_handle"] == "ada"

    forbidden = await api_client.post(f"/follows/requests/{request_id}/approve", headers=_as(ada))
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "not_authorized"

    approved = await api_client.post(f"/follows/requests/{request_id}/approve", headers=_as(cy))
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert (ada.id, cy.id) in graph.edges

    gone = await api_client.post(f"/follows/requests/{request_id}/reject", headers=_as(cy))
    assert gone.status_code == 410
    assert gone.json()["detail"] == "not_pending"


@pytest.mark.asyncio
async def test_unknown_request_is_404(wired, users, api_client):
    cy = users.add("cy")
    response = await api_client.post(f"/follows/requests/{uuid4()}/reject", headers=_as(cy))
    assert response.status_code == 404
    assert response.json()["detail"] == "request_not_found"


@pytest.mark.asyncio
async def test_cancel_and_unfollow(wired, users, graph, api_client):
    ada = users.add("ada")
    bo = users.add("bo")
    cy = users.add("cy", is_public=False)
    await api_client.post(f"/follows/{bo.id}", headers=_as(ada))
    await api_client.post(f"/follows/{cy.id}", headers=_as(ada))

    cancelled = await api_client.delete(f"/follows/requests/outgoing/{cy.id}", headers=_as(ada))
    unfollowed = await api_client.delete(f"/follows/{bo.id}", headers=_as(ada))

    assert cancelled.status_code == 204
    assert unfollowed.status_code == 204
    assert graph.edges == {}
    assert graph.requests == {}


@pytest.mark.asyncio
async def test_relationship_and_private_lists(wired, users, api_client):
    ada = users.add("ada")
    cy = users.add("cy", is_public=False)
    await api_client.post(f"/follows/{cy.id}", headers=_as(ada))

    relationship = await api_client.get(f"/follows/{cy.id}/relationship", headers=_as(ada))
    followers = await api_client.get(f"/users/{cy.id}/followers", headers=_as(ada))
    own = await api_client.get(f"/users/{cy.id}/following", headers=_as(cy))

    assert relationship.json()["has_pending_request"] is True
    assert followers.status_code == 403
    assert followers.json()["detail"] == "account_private"
    assert own.status_code == 200
    assert own.json()["total"] == 0


@pytest.mark.asyncio
async def test_missing_credentials_rejected(wired, users, api_client):
    bo = users.add("bo")
    response = await api_client.post(f"/follows/{bo.id}")
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_user_id_header_ignored_outside_dev(wired, users, api_client):
    ada = users.add("ada")
    bo = users.add("bo")
    settings.environment = "production"

    header_only = await api_client.post(f"/follows/{bo.id}", headers=_as(ada))
    token = jwt_helper.encode_access({"sub": str(ada.id)})
    bearer = await api_client.post(f"/follows/{bo.id}", headers={"Authorization": f"Bearer {token}"})

    assert header_only.status_code == 401
    assert bearer.status_code == 200
    assert bearer.json() == {"status": "followed"}
