"""
Tests for project intake, delivery, review and the status lifecycle.

Tests cover:
- Allowed-transition table per actor
- Submission numbering and ownership scoping
- Admin delivery, customer accept/rework, stale responses
- Listing filters and overview counts
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from httpx import AsyncClient
from pydantic import ValidationError

from app.services import projects as project_service
from conftest import deliver, submit_project
from nexus_shared.schemas.common import Actor, ProjectStatus
from nexus_shared.schemas.projects import (
    AdminResponse,
    ProjectCreate,
    allowed_transitions,
    validate_transition,
)


# ---------------------------------------------------------------------------
# Unit tests: transition table
# ---------------------------------------------------------------------------


class TestTransitionTable:
    def test_customer_in_review_can_accept_or_rework(self):
        assert allowed_transitions(ProjectStatus.CUSTOMER_REVIEW, Actor.CUSTOMER) == [
            ProjectStatus.ACCEPTED,
            ProjectStatus.REWORK_REQUESTED,
        ]

    def test_customer_cannot_move_pending(self):
        assert allowed_transitions(ProjectStatus.PENDING, Actor.CUSTOMER) == []

    def test_admin_from_pending(self):
        assert allowed_transitions(ProjectStatus.PENDING, Actor.ADMIN) == [
            ProjectStatus.IN_PROGRESS,
            ProjectStatus.CUSTOMER_REVIEW,
        ]

    def test_completed_is_terminal(self):
        for actor in Actor:
            assert allowed_transitions(ProjectStatus.COMPLETED, actor) == []

    def test_system_completes_from_any_open_status(self):
        for status in ProjectStatus:
            if status is ProjectStatus.COMPLETED:
                continue
            ok, _ = validate_transition(status, ProjectStatus.COMPLETED, Actor.SYSTEM)
            assert ok, status

    def test_same_status_rejected(self):
        ok, msg = validate_transition(ProjectStatus.PENDING, ProjectStatus.PENDING, Actor.ADMIN)
        assert not ok
        assert "already" in msg

    def test_unknown_edge_rejected(self):
        ok, msg = validate_transition(ProjectStatus.PENDING, ProjectStatus.PAID, Actor.ADMIN)
        assert not ok
        assert "Cannot transition" in msg

    def test_wrong_actor_rejected(self):
        ok, msg = validate_transition(
            ProjectStatus.CUSTOMER_REVIEW, ProjectStatus.ACCEPTED, Actor.ADMIN
        )
        assert not ok
        assert "admin cannot" in msg


class TestSchemas:
    def test_blank_description_rejected(self):
        with pytest.raises(ValidationError):
            ProjectCreate(category="Automations", description="   ")

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            ProjectCreate(category="Printing", description="Flyers")

    def test_negative_bill_rejected(self):
        with pytest.raises(ValidationError):
            AdminResponse(admin_response="done", bill_amount="-1")


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_project(client: AsyncClient, customer_headers, mailer):
    first = await submit_project(client, customer_headers)
    second = await submit_project(client, customer_headers, category="Automations")

    assert first["status"] == "Pending"
    assert Decimal(first["bill_amount"]) == 0
    assert first["project_number"] == 1001
    assert second["project_number"] == 1002
    assert first["allowed_transitions"] == []
    assert first["customer"] is None

    # Admin notified, resolved from the first admin profile
    assert len(mailer.sent) == 2
    assert mailer.sent[0]["To"] == "owner@example.com"
    assert "#1001" in mailer.sent[0]["Subject"]


@pytest.mark.asyncio
async def test_taken_project_number_is_retried(client: AsyncClient, customer_headers, monkeypatch):
    first = await submit_project(client, customer_headers)
    fresh_number = project_service.next_project_number
    calls = []

    async def racing_number(session):
        calls.append(1)
        if len(calls) == 1:
            return first["project_number"]
        return await fresh_number(session)

    monkeypatch.setattr(project_service, "next_project_number", racing_number)
    second = await submit_project(client, customer_headers)
    assert second["project_number"] == first["project_number"] + 1
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_project_number_gives_up_after_retries(client: AsyncClient, customer_headers, monkeypatch):
    first = await submit_project(client, customer_headers)

    async def always_taken(session):
        return first["project_number"]

    monkeypatch.setattr(project_service, "next_project_number", always_taken)
    response = await client.post(
        "/api/v1/projects/",
        json={"category": "Automations", "description": "Sync orders nightly"},
        headers=customer_headers,
    )
    assert response.status_code == 409

    monkeypatch.undo()
    listed = (await client.get("/api/v1/projects/", headers=customer_headers)).json()
    assert [p["id"] for p in listed] == [first["id"]]


@pytest.mark.asyncio
async def test_submit_requires_description(client: AsyncClient, customer_headers):
    response = await client.post(
        "/api/v1/projects/",
        json={"category": "AI Services", "description": " "},
        headers=customer_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_submit_survives_mail_failure(client: AsyncClient, customer_headers, mailer):
    mailer.fail()
    project = await submit_project(client, customer_headers)
    assert project["status"] == "Pending"
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_customers_only_see_their_own(
    client: AsyncClient, admin_headers, customer_headers, other_customer_headers
):
    mine = await submit_project(client, customer_headers)
    await submit_project(client, other_customer_headers, project_name="Other")

    listed = (await client.get("/api/v1/projects/", headers=customer_headers)).json()
    assert [p["id"] for p in listed] == [mine["id"]]

    response = await client.get(f"/api/v1/projects/{mine['id']}", headers=other_customer_headers)
    assert response.status_code == 404

    admin_list = (await client.get("/api/v1/projects/", headers=admin_headers)).json()
    assert len(admin_list) == 2
    assert {p["customer"]["email"] for p in admin_list} == {"alice@example.com", "bob@example.org"}


@pytest.mark.asyncio
async def test_update_intake_rules(client: AsyncClient, admin_headers, customer_headers):
    project = await submit_project(client, customer_headers)
    url = f"/api/v1/projects/{project['id']}"

    response = await client.patch(url, json={"spec_colors": "red, navy"}, headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["spec_colors"] == "red, navy"

    await client.post(f"{url}/transition", json={"to_status": "In Progress"}, headers=admin_headers)

    locked = await client.patch(url, json={"spec_colors": "black"}, headers=customer_headers)
    assert locked.status_code == 409

    by_admin = await client.patch(url, json={"spec_colors": "black"}, headers=admin_headers)
    assert by_admin.status_code == 200
    assert by_admin.json()["spec_colors"] == "black"


# ---------------------------------------------------------------------------
# Delivery & review
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_admin_delivery(client: AsyncClient, admin_headers, customer_headers, mailer):
    project = await submit_project(client, customer_headers)
    mailer.sent.clear()

    response = await client.post(
        f"/api/v1/projects/{project['id']}/respond",
        json={
            "admin_response": "Images attached",
            "bill_amount": "249.50",
            "admin_attachments": ["solution-1700000000000-look_1.png"],
        },
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Customer Review"
    assert Decimal(data["bill_amount"]) == Decimal("249.50")
    assert data["admin_attachments"] == ["solution-1700000000000-look_1.png"]
    assert data["admin_attachment_urls"] == ["/storage/attachments/solution-1700000000000-look_1.png"]
    assert data["customer"]["email"] == "alice@example.com"

    assert len(mailer.sent) == 1
    assert mailer.sent[0]["To"] == "alice@example.com"


@pytest.mark.asyncio
async def test_delivery_uses_contact_email(client: AsyncClient, admin_headers, customer_headers, mailer):
    await client.patch(
        "/api/v1/profiles/me", json={"contact_email": "studio@example.com"}, headers=customer_headers
    )
    project = await submit_project(client, customer_headers)
    mailer.sent.clear()
    await deliver(client, admin_headers, project["id"])
    assert mailer.sent[0]["To"] == "studio@example.com"


@pytest.mark.asyncio
async def test_customer_sees_review_options(client: AsyncClient, admin_headers, customer_headers):
    project = await submit_project(client, customer_headers)
    await deliver(client, admin_headers, project["id"])

    data = (await client.get(f"/api/v1/projects/{project['id']}", headers=customer_headers)).json()
    assert data["allowed_transitions"] == ["Accepted", "Rework Requested"]


@pytest.mark.asyncio
async def test_accept(client: AsyncClient, admin_headers, customer_headers, mailer):
    project = await submit_project(client, customer_headers)
    await deliver(client, admin_headers, project["id"])
    mailer.sent.clear()

    response = await client.post(
        f"/api/v1/projects/{project['id']}/review", json={"decision": "accept"}, headers=customer_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Accepted"
    assert mailer.sent[0]["To"] == "owner@example.com"


@pytest.mark.asyncio
async def test_rework_requires_feedback(client: AsyncClient, admin_headers, customer_headers):
    project = await submit_project(client, customer_headers)
    await deliver(client, admin_headers, project["id"])

    response = await client.post(
        f"/api/v1/projects/{project['id']}/review",
        json={"decision": "rework", "feedback": "  "},
        headers=customer_headers,
    )
    assert response.status_code == 422

    data = (await client.get(f"/api/v1/projects/{project['id']}", headers=customer_headers)).json()
    assert data["status"] == "Customer Review"


@pytest.mark.asyncio
async def test_rework_cycle(client: AsyncClient, admin_headers, customer_headers, mailer):
    project = await submit_project(client, customer_headers)
    await deliver(client, admin_headers, project["id"])

    response = await client.post(
        f"/api/v1/projects/{project['id']}/review",
        json={"decision": "rework", "feedback": "Warmer lighting please"},
        headers=customer_headers,
    )
    data = response.json()
    assert data["status"] == "Rework Requested"
    assert data["rework_feedback"] == "Warmer lighting please"
    assert data["admin_response"] == "Delivered the first batch"
    assert data["admin_response_stale"] is True
    assert "Warmer lighting please" in mailer.sent[-1].get_payload(decode=True).decode()

    redelivered = await client.post(
        f"/api/v1/projects/{project['id']}/respond",
        json={"admin_response": "Relit", "bill_amount": "150.00", "admin_attachments": ["b.png"]},
        headers=admin_headers,
    )
    data = redelivered.json()
    assert data["status"] == "Customer Review"
    assert data["rework_feedback"] is None
    assert data["admin_response_stale"] is False


@pytest.mark.asyncio
async def test_admin_attachments_are_appended(client: AsyncClient, admin_headers, customer_headers):
    project = await submit_project(client, customer_headers)
    url = f"/api/v1/projects/{project['id']}/respond"
    await client.post(url, json={"admin_response": "v1", "admin_attachments": ["a.png"]}, headers=admin_headers)
    response = await client.post(
        url, json={"admin_response": "v2", "admin_attachments": ["b.png"]}, headers=admin_headers
    )
    assert response.json()["admin_attachments"] == ["a.png", "b.png"]


@pytest.mark.asyncio
async def test_customer_and_admin_attachments_kept_apart(
    client: AsyncClient, admin_headers, customer_headers
):
    project = await submit_project(client, customer_headers, attachments=["a", "b"])
    assert project["attachments"] == ["a", "b"]
    assert project["admin_attachments"] == []

    await client.post(
        f"/api/v1/projects/{project['id']}/respond",
        json={"admin_response": "Done", "admin_attachments": ["c"]},
        headers=admin_headers,
    )

    for headers in (customer_headers, admin_headers):
        read = (await client.get(f"/api/v1/projects/{project['id']}", headers=headers)).json()
        assert read["attachments"] == ["a", "b"]
        assert read["admin_attachments"] == ["c"]


@pytest.mark.asyncio
async def test_only_owner_reviews(
    client: AsyncClient, admin_headers, customer_headers, other_customer_headers
):
    project = await submit_project(client, customer_headers)
    await deliver(client, admin_headers, project["id"])

    by_admin = await client.post(
        f"/api/v1/projects/{project['id']}/review", json={"decision": "accept"}, headers=admin_headers
    )
    by_stranger = await client.post(
        f"/api/v1/projects/{project['id']}/review", json={"decision": "accept"}, headers=other_customer_headers
    )
    assert by_admin.status_code == 403
    assert by_stranger.status_code == 404


@pytest.mark.asyncio
async def test_respond_requires_admin(client: AsyncClient, customer_headers):
    project = await submit_project(client, customer_headers)
    response = await client.post(
        f"/api/v1/projects/{project['id']}/respond",
        json={"admin_response": "self-serve"},
        headers=customer_headers,
    )
    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_illegal_transition_leaves_status(client: AsyncClient, admin_headers, customer_headers):
    project = await submit_project(client, customer_headers)
    url = f"/api/v1/projects/{project['id']}"

    response = await client.post(f"{url}/transition", json={"to_status": "In Progress"}, headers=customer_headers)
    assert response.status_code == 422

    response = await client.post(f"{url}/transition", json={"to_status": "Paid"}, headers=admin_headers)
    assert response.status_code == 422

    data = (await client.get(url, headers=customer_headers)).json()
    assert data["status"] == "Pending"


@pytest.mark.asyncio
async def test_admin_walks_lifecycle(client: AsyncClient, admin_headers, customer_headers):
    project = await submit_project(client, customer_headers)
    url = f"/api/v1/projects/{project['id']}"

    for to_status in ("In Progress", "Customer Review"):
        response = await client.post(f"{url}/transition", json={"to_status": to_status}, headers=admin_headers)
        assert response.status_code == 200, response.text

    # Customer-only edge
    response = await client.post(f"{url}/transition", json={"to_status": "Accepted"}, headers=admin_headers)
    assert response.status_code == 422

    for to_status in ("Paid", "Completed"):
        response = await client.post(f"{url}/transition", json={"to_status": to_status}, headers=admin_headers)
        assert response.status_code == 200, response.text

    data = response.json()
    assert data["status"] == "Completed"
    assert data["allowed_transitions"] == []

    response = await client.post(f"{url}/transition", json={"to_status": "In Progress"}, headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_rework_not_allowed_without_feedback_via_transition(
    client: AsyncClient, admin_headers, customer_headers
):
    project = await submit_project(client, customer_headers)
    await deliver(client, admin_headers, project["id"])
    response = await client.post(
        f"/api/v1/projects/{project['id']}/transition",
        json={"to_status": "Rework Requested"},
        headers=customer_headers,
    )
    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_scope_and_search(client: AsyncClient, admin_headers, customer_headers):
    await client.patch("/api/v1/profiles/me", json={"brand_name": "Northwind"}, headers=customer_headers)
    open_project = await submit_project(client, customer_headers, project_name="Lookbook")
    done = await submit_project(client, customer_headers, project_name="Landing page", category="Websites & Apps")
    url = f"/api/v1/projects/{done['id']}/transition"
    for to_status in ("Customer Review", "Paid"):
        await client.post(url, json={"to_status": to_status}, headers=admin_headers)

    async def ids(**params):
        response = await client.get("/api/v1/projects/", params=params, headers=admin_headers)
        assert response.status_code == 200
        return {p["id"] for p in response.json()}

    assert await ids(scope="active") == {open_project["id"]}
    assert await ids(scope="archive") == {done["id"]}
    assert await ids(category="Websites & Apps") == {done["id"]}
    assert await ids(q="look") == {open_project["id"]}
    assert await ids(q=str(done["project_number"])) == {done["id"]}
    assert await ids(q="northwind") == {open_project["id"], done["id"]}
    assert await ids(status="Paid") == {done["id"]}


@pytest.mark.asyncio
async def test_pagination(client: AsyncClient, customer_headers):
    for i in range(3):
        await submit_project(client, customer_headers, project_name=f"P{i}")
    page1 = (await client.get("/api/v1/projects/", params={"per_page": 2}, headers=customer_headers)).json()
    page2 = (
        await client.get("/api/v1/projects/", params={"per_page": 2, "page": 2}, headers=customer_headers)
    ).json()
    assert len(page1) == 2
    assert len(page2) == 1


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, admin_headers, customer_headers, other_customer_headers):
    a = await submit_project(client, customer_headers)
    b = await submit_project(client, customer_headers)
    await submit_project(client, other_customer_headers)
    await deliver(client, admin_headers, a["id"])
    url = f"/api/v1/projects/{b['id']}/transition"
    for to_status in ("Customer Review", "Paid", "Completed"):
        await client.post(url, json={"to_status": to_status}, headers=admin_headers)

    response = await client.get("/api/v1/projects/stats", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {
        "total": 3,
        "action_pipeline": 1,
        "awaiting_review": 1,
        "completed": 1,
        "customers": 2,
    }

    assert (await client.get("/api/v1/projects/stats", headers=customer_headers)).status_code == 403
