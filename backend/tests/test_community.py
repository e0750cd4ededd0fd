"""Reviews and comments on listings."""
from __future__ import annotations

from tests.conftest import auth_header, listing_payload


async def _approved_listing(client, make_user) -> int:
    owner = await make_user()
    admin = await make_user(role="admin")
    response = await client.post("/api/servers", json=listing_payload(), headers=auth_header(owner))
    listing_id = response.json()["id"]
    await client.patch(f"/api/servers/{listing_id}/status", json={"status": "approved"}, headers=auth_header(admin))
    return listing_id


class TestReviews:
    async def test_second_review_replaces_first(self, client, make_user) -> None:
        listing_id = await _approved_listing(client, make_user)
        reviewer = await make_user(discord_username="critic")

        first = await client.post(
            f"/api/servers/{listing_id}/reviews", json={"rating": 3, "comment": "ok"}, headers=auth_header(reviewer)
        )
        second = await client.post(
            f"/api/servers/{listing_id}/reviews", json={"rating": 5, "comment": "great"}, headers=auth_header(reviewer)
        )
        assert first.status_code == second.status_code == 200
        assert first.json()["id"] == second.json()["id"]

        body = (await client.get(f"/api/servers/{listing_id}/reviews")).json()
        assert [(r["discord_username"], r["rating"], r["comment"]) for r in body["reviews"]] == [
            ("critic", 5, "great")
        ]
        assert body["average_rating"] == 5.0

    async def test_average_across_reviewers(self, client, make_user) -> None:
        listing_id = await _approved_listing(client, make_user)
        for rating in (2, 3, 5):
            reviewer = await make_user()
            await client.post(
                f"/api/servers/{listing_id}/reviews", json={"rating": rating}, headers=auth_header(reviewer)
            )
        body = (await client.get(f"/api/servers/{listing_id}/reviews")).json()
        assert len(body["reviews"]) == 3
        assert body["average_rating"] == 3.33

    async def test_no_reviews_has_no_average(self, client, make_user) -> None:
        listing_id = await _approved_listing(client, make_user)
        body = (await client.get(f"/api/servers/{listing_id}/reviews")).json()
        assert body == {"reviews": [], "average_rating": None}

    async def test_rating_bounds(self, client, make_user) -> None:
        listing_id = await _approved_listing(client, make_user)
        reviewer = await make_user()
        for rating in (0, 6, "5", None):
            response = await client.post(
                f"/api/servers/{listing_id}/reviews", json={"rating": rating}, headers=auth_header(reviewer)
            )
            assert response.status_code == 400, rating

    async def test_review_requires_login_and_listing(self, client, make_user) -> None:
        listing_id = await _approved_listing(client, make_user)
        assert (await client.post(f"/api/servers/{listing_id}/reviews", json={"rating": 4})).status_code == 401
        reviewer = await make_user()
        response = await client.post("/api/servers/999/reviews", json={"rating": 4}, headers=auth_header(reviewer))
        assert response.status_code == 404


class TestComments:
    async def test_comments_listed_newest_first(self, client, make_user) -> None:
        listing_id = await _approved_listing(client, make_user)
        author = await make_user(discord_username="chatty")
        for text in ("first", "second"):
            response = await client.post(
                f"/api/servers/{listing_id}/comments", json={"text": text}, headers=auth_header(author)
            )
            assert response.status_code == 201

        comments = (await client.get(f"/api/servers/{listing_id}")).json()["comments"]
        assert [(c["user"], c["text"]) for c in comments] == [("chatty", "second"), ("chatty", "first")]

    async def test_comments_only_on_approved_listings(self, client, make_user) -> None:
        owner = await make_user()
        response = await client.post("/api/servers", json=listing_payload(), headers=auth_header(owner))
        listing_id = response.json()["id"]
        response = await client.post(
            f"/api/servers/{listing_id}/comments", json={"text": "hello"}, headers=auth_header(owner)
        )
        assert response.status_code == 404

    async def test_blank_comment_rejected(self, client, make_user) -> None:
        listing_id = await _approved_listing(client, make_user)
        author = await make_user()
        response = await client.post(
            f"/api/servers/{listing_id}/comments", json={"text": "  "}, headers=auth_header(author)
        )
        assert response.status_code == 400
