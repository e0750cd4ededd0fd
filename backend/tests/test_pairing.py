"""Pairing codes that sign a second device into an existing account."""
from __future__ import annotations

import pytest

from opslink.services.pairing import TTLStore, claim_pairing_code, create_pairing_code
from tests.conftest import auth_header


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestTTLStore:
    def test_entries_expire(self, clock: FakeClock) -> None:
        store: TTLStore[int] = TTLStore(ttl=30, clock=clock)
        store.put("a", 1)
        store.put("b", 2)
        clock.now += 29
        assert store.pop("a") == 1
        clock.now += 1
        assert store.pop("b") is None
        assert len(store) == 0

    def test_sweep_drops_expired_entries(self, clock: FakeClock) -> None:
        store: TTLStore[int] = TTLStore(ttl=30, clock=clock)
        store.put("a", 1)
        clock.now += 30
        assert len(store) == 1
        assert store.sweep() == 1
        assert len(store) == 0

    def test_pop_is_single_use(self, clock: FakeClock) -> None:
        store: TTLStore[int] = TTLStore(ttl=30, clock=clock)
        store.put("a", 1)
        assert store.pop("a") == 1
        assert store.pop("a") is None

    def test_sweep_keeps_live_entries(self, clock: FakeClock) -> None:
        store: TTLStore[int] = TTLStore(ttl=30, clock=clock)
        store.put("old", 1)
        clock.now += 20
        store.put("new", 2)
        clock.now += 15
        assert store.sweep() == 1
        assert store.pop("new") == 2

    def test_codes_are_unique_and_claimable_once(self, clock: FakeClock) -> None:
        store: TTLStore[int] = TTLStore(ttl=300, clock=clock)
        codes = {create_pairing_code(7, store) for _ in range(20)}
        assert len(codes) == 20
        code = codes.pop()
        assert claim_pairing_code(code, store) == 7
        assert claim_pairing_code(code, store) is None


class TestPairingEndpoints:
    async def test_claim_issues_session_once(self, client, make_user) -> None:
        user = await make_user()
        created = await client.post("/api/pairing", headers=auth_header(user))
        assert created.status_code == 201
        assert created.json()["expires_in"] == 300
        code = created.json()["code"]

        claimed = await client.post("/api/pairing/claim", json={"code": code})
        assert claimed.status_code == 200
        token = claimed.json()["token"]
        me = await client.get("/api/user", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["id"] == user.id

        again = await client.post("/api/pairing/claim", json={"code": code})
        assert again.status_code == 400

    async def test_creating_code_needs_session(self, client) -> None:
        assert (await client.post("/api/pairing")).status_code == 401
