"""Listing submission and the moderation workflow over HTTP."""
from __future__ import annotations

from sqlalchemy import func, select

from opslink.core.config import get_settings
from opslink.db.session import async_session_factory
from opslink.models.comment import Comment
from tests.conftest import auth_header, listing_payload


async def _submit(client, owner, **overrides) -> int:
    response = await client.post("/api/servers", json=listing_payload(**overrides), headers=auth_header(owner))
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def _set_status(client, moderator, listing_id: int, status: str, reason: str | None = None):
    body = {"status": status}
    if reason is not None:
        body["reason"] = reason
    return await client.patch(f"/api/servers/{listing_id}/status", json=body, headers=auth_header(moderator))


class TestSubmit:
    async def test_submit_creates_pending_listing(self, client, dispatcher, make_user) -> None:
        owner = await make_user(discord_username="owner")
        listing_id = await _submit(client, owner)

        listing = (await client.get(f"/api/servers/{listing_id}")).json()
        assert listing["status"] == "pending"
        assert listing["submitter_username"] == "owner"
        assert listing["tags"] == ["art", "pixel"]
        assert listing["rejection_reason"] is None
        assert dispatcher.subjects() == ["New server submission"]

        public = (await client.get("/api/servers")).json()
        assert public == []

    async def test_tags_are_normalized_on_submit(self, client, make_user) -> None:
        owner = await make_user()
        tags = ["Gaming", "gaming", "RP", "rp", "Trade", "Trade", "Chill", "New", "Extra"]
        listing_id = await _submit(client, owner, tags=tags)

        listing = (await client.get(f"/api/servers/{listing_id}")).json()
        assert listing["tags"] == ["gaming", "rp", "trade", "chill", "new"]

    async def test_logo_must_be_direct_image_url(self, client, make_user) -> None:
        owner = await make_user()
        for logo in (None, "", "https://example.com/logo", "ftp://example.com/logo.png"):
            response = await client.post(
                "/api/servers", json=listing_payload(logo=logo), headers=auth_header(owner)
            )
            assert response.status_code == 400, logo

    async def test_discord_server_id_is_required(self, client, make_user) -> None:
        owner = await make_user()
        response = await client.post(
            "/api/servers", json=listing_payload(discord_server_id=None), headers=auth_header(owner)
        )
        assert response.status_code == 400

    async def test_submit_requires_authentication(self, client) -> None:
        response = await client.post("/api/servers", json=listing_payload())
        assert response.status_code == 401


class TestStatus:
    async def test_moderator_approves_listing(self, client, dispatcher, make_user) -> None:
        owner = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)

        response = await _set_status(client, admin, listing_id, "approved")
        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert [item["id"] for item in (await client.get("/api/servers")).json()] == [listing_id]
        assert dispatcher.subjects()[-1] == "Server status updated"

    async def test_denial_reason_is_set_then_cleared(self, client, make_user) -> None:
        owner = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)

        denied = await _set_status(client, admin, listing_id, "denied", reason="Invite link is broken")
        assert denied.json()["rejection_reason"] == "Invite link is broken"

        reopened = await _set_status(client, admin, listing_id, "pending", reason="ignored")
        assert reopened.json()["status"] == "pending"
        assert reopened.json()["rejection_reason"] is None

    async def test_approved_listing_can_be_taken_down(self, client, make_user) -> None:
        owner = await make_user()
        admin = await make_user(role="management")
        listing_id = await _submit(client, owner)
        await _set_status(client, admin, listing_id, "approved")

        response = await _set_status(client, admin, listing_id, "taken-down")
        assert response.json()["status"] == "taken-down"
        assert (await client.get("/api/servers")).json() == []

    async def test_unknown_status_is_rejected(self, client, make_user) -> None:
        owner = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)
        response = await _set_status(client, admin, listing_id, "archived")
        assert response.status_code == 400

    async def test_regular_users_cannot_moderate(self, client, make_user) -> None:
        owner = await make_user()
        listing_id = await _submit(client, owner)
        response = await _set_status(client, owner, listing_id, "approved")
        assert response.status_code == 403
        assert (await client.get("/api/servers/all", headers=auth_header(owner))).status_code == 403

    async def test_missing_listing(self, client, make_user) -> None:
        admin = await make_user(role="admin")
        response = await _set_status(client, admin, 999, "approved")
        assert response.status_code == 404


class TestEditRequests:
    EDIT = {
        "name": "Pixel Haven",
        "description": "An even friendlier community for pixel artists.",
        "logo": "https://cdn.example.com/new-logo.webp",
        "website": "",
        "tags": ["Retro", "ART", "retro"],
    }

    async def _listing_with_edit(self, client, make_user):
        owner = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)
        response = await client.post(
            f"/api/servers/{listing_id}/request-edit", json=self.EDIT, headers=auth_header(owner)
        )
        assert response.status_code == 201, response.text
        return owner, admin, listing_id, response.json()

    async def test_request_edit_keeps_only_allowed_non_empty_fields(self, client, dispatcher, make_user) -> None:
        _, _, _, edit = await self._listing_with_edit(client, make_user)
        assert edit["status"] == "pending"
        assert edit["changes"] == {
            "description": "An even friendlier community for pixel artists.",
            "logo": "https://cdn.example.com/new-logo.webp",
            "tags": ["retro", "art"],
        }
        assert dispatcher.subjects()[-1] == "Edit request submitted"
        assert "new-logo.webp" in dispatcher.events[-1][1]

    async def test_non_owner_cannot_request_edit(self, client, make_user) -> None:
        owner = await make_user()
        stranger = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)

        response = await client.post(
            f"/api/servers/{listing_id}/request-edit", json=self.EDIT, headers=auth_header(stranger)
        )
        assert response.status_code == 403

        listing = (await client.get("/api/servers/all", headers=auth_header(admin))).json()[0]
        assert listing["edit_requests"] == []

    async def test_edit_requires_name_description_and_logo(self, client, make_user) -> None:
        owner = await make_user()
        listing_id = await _submit(client, owner)
        response = await client.post(
            f"/api/servers/{listing_id}/request-edit",
            json={"description": "Only a new description here."},
            headers=auth_header(owner),
        )
        assert response.status_code == 400

    async def test_edit_logo_is_validated(self, client, make_user) -> None:
        owner = await make_user()
        listing_id = await _submit(client, owner)
        response = await client.post(
            f"/api/servers/{listing_id}/request-edit",
            json={**self.EDIT, "logo": "https://example.com/not-an-image"},
            headers=auth_header(owner),
        )
        assert response.status_code == 400

    async def test_approve_applies_exactly_the_change_set(self, client, dispatcher, make_user) -> None:
        _, admin, listing_id, edit = await self._listing_with_edit(client, make_user)
        before = (await client.get(f"/api/servers/{listing_id}")).json()

        response = await client.post(
            f"/api/servers/{listing_id}/edit-approve", json={"edit_id": edit["id"]}, headers=auth_header(admin)
        )
        assert response.status_code == 200
        after = (await client.get(f"/api/servers/{listing_id}")).json()

        assert after["description"] == edit["changes"]["description"]
        assert after["logo"] == edit["changes"]["logo"]
        assert after["tags"] == ["retro", "art"]
        for field in ("name", "invite", "language", "members", "type", "website", "nsfw", "status"):
            assert after[field] == before[field], field
        assert after["revision"] == before["revision"] + 1

        moderation = (await client.get("/api/servers/all", headers=auth_header(admin))).json()[0]
        assert moderation["edit_requests"] == []
        assert dispatcher.subjects()[-1] == "Edit request approved"

    async def test_deny_leaves_listing_untouched(self, client, make_user) -> None:
        _, admin, listing_id, edit = await self._listing_with_edit(client, make_user)
        before = (await client.get(f"/api/servers/{listing_id}")).json()

        response = await client.post(
            f"/api/servers/{listing_id}/edit-deny",
            json={"edit_id": edit["id"], "reason": "Logo is low resolution"},
            headers=auth_header(admin),
        )
        assert response.status_code == 200
        after = (await client.get(f"/api/servers/{listing_id}")).json()
        assert after["revision"] == before["revision"] + 1
        for volatile in ("revision", "updated_at"):
            after.pop(volatile)
            before.pop(volatile)
        assert after == before

        moderation = (await client.get("/api/servers/all", headers=auth_header(admin))).json()[0]
        assert moderation["edit_requests"] == []

    async def test_tags_that_normalize_to_nothing_are_not_proposed(self, client, make_user) -> None:
        owner = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)
        edit = (
            await client.post(
                f"/api/servers/{listing_id}/request-edit",
                json={**self.EDIT, "tags": ["x", "  "]},
                headers=auth_header(owner),
            )
        ).json()
        assert "tags" not in edit["changes"]

        await client.post(
            f"/api/servers/{listing_id}/edit-approve", json={"edit_id": edit["id"]}, headers=auth_header(admin)
        )
        assert (await client.get(f"/api/servers/{listing_id}")).json()["tags"] == ["art", "pixel"]

    async def test_child_writes_bump_revision(self, client, make_user) -> None:
        owner = await make_user()
        listing_id = await _submit(client, owner)

        async def revision() -> int:
            return (await client.get(f"/api/servers/{listing_id}")).json()["revision"]

        start = await revision()
        await client.post(f"/api/servers/{listing_id}/request-edit", json=self.EDIT, headers=auth_header(owner))
        assert await revision() == start + 1
        await client.post(f"/api/servers/{listing_id}/report", json={"reason": "spam"}, headers=auth_header(owner))
        assert await revision() == start + 2
        await client.post(f"/api/servers/{listing_id}/reviews", json={"rating": 4}, headers=auth_header(owner))
        assert await revision() == start + 3

    async def test_unknown_edit_request(self, client, make_user) -> None:
        _, admin, listing_id, _ = await self._listing_with_edit(client, make_user)
        response = await client.post(
            f"/api/servers/{listing_id}/edit-approve", json={"edit_id": 9999}, headers=auth_header(admin)
        )
        assert response.status_code == 404
        response = await client.post(
            "/api/servers/9999/edit-approve", json={"edit_id": 1}, headers=auth_header(admin)
        )
        assert response.status_code == 404

    async def test_multiple_pending_edits_resolve_independently(self, client, make_user) -> None:
        owner, admin, listing_id, first = await self._listing_with_edit(client, make_user)
        second = (
            await client.post(
                f"/api/servers/{listing_id}/request-edit",
                json={**self.EDIT, "website": "https://pixelhaven.example"},
                headers=auth_header(owner),
            )
        ).json()

        await client.post(
            f"/api/servers/{listing_id}/edit-deny", json={"edit_id": first["id"]}, headers=auth_header(admin)
        )
        moderation = (await client.get("/api/servers/all", headers=auth_header(admin))).json()[0]
        assert [item["id"] for item in moderation["edit_requests"]] == [second["id"]]

    async def test_stale_revision_is_rejected(self, client, make_user) -> None:
        owner, admin, listing_id, first = await self._listing_with_edit(client, make_user)
        second = (
            await client.post(f"/api/servers/{listing_id}/request-edit", json=self.EDIT, headers=auth_header(owner))
        ).json()
        revision = (await client.get(f"/api/servers/{listing_id}")).json()["revision"]

        approved = await client.post(
            f"/api/servers/{listing_id}/edit-approve",
            json={"edit_id": first["id"], "expected_revision": revision},
            headers=auth_header(admin),
        )
        assert approved.status_code == 200

        stale = await client.post(
            f"/api/servers/{listing_id}/edit-approve",
            json={"edit_id": second["id"], "expected_revision": revision},
            headers=auth_header(admin),
        )
        assert stale.status_code == 409
        moderation = (await client.get("/api/servers/all", headers=auth_header(admin))).json()[0]
        assert [item["id"] for item in moderation["edit_requests"]] == [second["id"]]


class TestReports:
    async def test_report_is_recorded_without_status_change(self, client, dispatcher, make_user) -> None:
        owner = await make_user()
        reporter = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)

        response = await client.post(
            f"/api/servers/{listing_id}/report", json={"reason": "Spam invites"}, headers=auth_header(reporter)
        )
        assert response.status_code == 201

        listing = (await client.get("/api/servers/all", headers=auth_header(admin))).json()[0]
        assert listing["status"] == "pending"
        assert [(r["reporter_id"], r["reason"]) for r in listing["reports"]] == [(reporter.id, "Spam invites")]
        assert dispatcher.subjects()[-1] == "Server reported"

    async def test_report_needs_reason(self, client, make_user) -> None:
        owner = await make_user()
        listing_id = await _submit(client, owner)
        for body in ({}, {"reason": "   "}):
            response = await client.post(f"/api/servers/{listing_id}/report", json=body, headers=auth_header(owner))
            assert response.status_code == 400


class TestDelete:
    async def _approved_with_comments(self, client, make_user, count: int = 3) -> int:
        owner = await make_user()
        admin = await make_user(role="admin")
        listing_id = await _submit(client, owner)
        await _set_status(client, admin, listing_id, "approved")
        for n in range(count):
            response = await client.post(
                f"/api/servers/{listing_id}/comments", json={"text": f"comment {n}"}, headers=auth_header(owner)
            )
            assert response.status_code == 201
        return listing_id

    async def test_delete_cascades_to_comments(self, client, make_user) -> None:
        listing_id = await self._approved_with_comments(client, make_user)
        manager = await make_user(role="management")

        response = await client.delete(f"/api/servers/{listing_id}", headers=auth_header(manager))
        assert response.status_code == 200
        assert (await client.get(f"/api/servers/{listing_id}")).status_code == 404

        async with async_session_factory() as session:
            remaining = await session.scalar(select(func.count(Comment.id)).where(Comment.listing_id == listing_id))
        assert remaining == 0

    async def test_strict_mode_requires_management(self, client, make_user) -> None:
        listing_id = await self._approved_with_comments(client, make_user, count=0)
        admin = await make_user(role="admin")
        response = await client.delete(f"/api/servers/{listing_id}", headers=auth_header(admin))
        assert response.status_code == 403

    async def test_relaxed_mode_allows_admins(self, client, make_user, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "delete_requires_management", False)
        listing_id = await self._approved_with_comments(client, make_user, count=0)
        admin = await make_user(role="admin")
        response = await client.delete(f"/api/servers/{listing_id}", headers=auth_header(admin))
        assert response.status_code == 200

    async def test_delete_missing_listing(self, client, make_user) -> None:
        manager = await make_user(role="management")
        response = await client.delete("/api/servers/4040", headers=auth_header(manager))
        assert response.status_code == 404


class TestMemberCount:
    async def test_bot_updates_member_count(self, client, dispatcher, make_user) -> None:
        owner = await make_user()
        listing_id = await _submit(client, owner, discord_server_id="777")
        events_before = len(dispatcher.events)

        response = await client.patch("/api/servers/777/updateMembers", json={"members": 4521})
        assert response.status_code == 200
        assert (await client.get(f"/api/servers/{listing_id}")).json()["members"] == 4521
        assert len(dispatcher.events) == events_before

    async def test_invalid_counts_and_unknown_servers(self, client, make_user) -> None:
        owner = await make_user()
        await _submit(client, owner, discord_server_id="777")
        for members in (-1, "many", None, 1.5, True):
            response = await client.patch("/api/servers/777/updateMembers", json={"members": members})
            assert response.status_code == 400, members
        response = await client.patch("/api/servers/888/updateMembers", json={"members": 5})
        assert response.status_code == 404

    async def test_bot_token_enforced_when_configured(self, client, make_user, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "bot_api_key", "s3cret")
        owner = await make_user()
        await _submit(client, owner, discord_server_id="777")

        denied = await client.patch("/api/servers/777/updateMembers", json={"members": 5})
        assert denied.status_code == 403
        allowed = await client.patch(
            "/api/servers/777/updateMembers", json={"members": 5}, headers={"X-Bot-Token": "s3cret"}
        )
        assert allowed.status_code == 200
