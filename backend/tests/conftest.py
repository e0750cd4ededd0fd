"""Shared fixtures: a throwaway SQLite database and an in-process API client."""
from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="opslink-tests-"))
os.environ["OPSLINK_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"
os.environ["OPSLINK_SECRET_KEY"] = "test-secret-key"
os.environ["OPSLINK_FRONTEND_URL"] = "https://frontend.test"
for _name in ("OPSLINK_DISCORD_WEBHOOK_URL", "OPSLINK_BOT_API_KEY", "OPSLINK_RESEND_API_KEY"):
    os.environ.pop(_name, None)

import httpx  # noqa: E402
import pytest  # noqa: E402

import opslink.models  # noqa: E402,F401
from opslink.core.dependencies import get_dispatcher, get_mailer  # noqa: E402
from opslink.core.errors import DeliveryError  # noqa: E402
from opslink.core.security import PasswordHasher, issue_access_token  # noqa: E402
from opslink.db.base import Base  # noqa: E402
from opslink.db.session import async_session_factory, engine  # noqa: E402
from opslink.main import app  # noqa: E402
from opslink.models.user import User  # noqa: E402
from opslink.services.notifications import Mailer, NotificationDispatcher  # noqa: E402

TOKEN_PATTERN = re.compile(r"token=([0-9a-f]+)")
DEFAULT_PASSWORD = "correct-horse-battery"


class RecordingMailer(Mailer):
    """Mailer that keeps outgoing mail in memory instead of calling Resend."""

    def __init__(self) -> None:
        super().__init__(api_key="test", sender="test@opslink.test", frontend_url="https://frontend.test")
        self.sent: list[dict[str, str]] = []
        self.fail = False

    async def send_email(self, to: str, subject: str, html: str) -> None:
        if self.fail:
            raise DeliveryError("Failed to send email")
        self.sent.append({"to": to, "subject": subject, "html": html})

    def last_token(self, to: str) -> str:
        for mail in reversed(self.sent):
            if mail["to"] == to:
                match = TOKEN_PATTERN.search(mail["html"])
                assert match, mail["html"]
                return match.group(1)
        raise AssertionError(f"no mail sent to {to}")


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self) -> None:
        super().__init__([])
        self.events: list[tuple[str, str]] = []

    async def dispatch(self, subject: str, body: str = "") -> None:
        self.events.append((subject, body))

    def subjects(self) -> list[str]:
        return [subject for subject, _ in self.events]


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
async def client(mailer: RecordingMailer, dispatcher: RecordingDispatcher):
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
def make_user():
    counter = {"n": 0}

    async def _make_user(
        role: str = "user",
        verified: bool = True,
        email: str | None = None,
        discord_username: str | None = None,
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        async with async_session_factory() as session:
            user = User(
                email=email or f"user{n}@example.com",
                password_hash=PasswordHasher.hash(password),
                discord_username=discord_username or f"member{n}",
                discord_user_id=f"9000{n}",
                discord_tag=f"{n:04d}",
                role=role,
                is_verified=verified,
                token_version=0,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


def auth_header(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_access_token(user.id, user.token_version)}"}


def listing_payload(**overrides) -> dict:
    payload = {
        "name": "Pixel Haven",
        "invite": "https://discord.gg/pixelhaven",
        "description": "A friendly community for pixel artists.",
        "logo": "https://cdn.example.com/pixel-haven.png",
        "discord_server_id": "112233445566",
        "language": "English",
        "members": 120,
        "type": "Art",
        "tags": ["Art", "pixel"],
    }
    payload.update(overrides)
    return payload
