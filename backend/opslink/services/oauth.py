"""OAuth providers used to link external accounts to a profile."""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from opslink.core.config import get_settings

logger = logging.getLogger(__name__)


class OAuthError(RuntimeError):
    """Raised when a provider rejects a code exchange or profile lookup."""


@dataclass(slots=True)
class OAuthTokens:
    access_token: str
    refresh_token: str | None = None


@dataclass(slots=True)
class OAuthIdentity:
    username: str
    profile_url: str


class OAuthProvider(abc.ABC):
    """Authorization-code flow against a single platform."""

    name: str
    authorize_endpoint: str
    token_endpoint: str
    profile_endpoint: str
    scopes: tuple[str, ...] = ()

    def __init__(self, client_id: str | None, client_secret: str | None) -> None:
        self.client_id = client_id
        self.client_secret = client_secret

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def redirect_uri(self) -> str:
        return f"{get_settings().api_base_url.rstrip('/')}/oauth/{self.name}/callback"

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(self.token_endpoint, data=data, headers={"Accept": "application/json"})
        if response.status_code >= 400:
            raise OAuthError(f"{self.name} token exchange failed with {response.status_code}")
        payload = response.json()
        if "access_token" not in payload:
            raise OAuthError(f"{self.name} token exchange returned no access token")
        return OAuthTokens(payload["access_token"], payload.get("refresh_token"))

    def profile_headers(self, tokens: OAuthTokens) -> dict[str, str]:
        return {"Authorization": f"Bearer {tokens.access_token}"}

    async def fetch_profile(self, tokens: OAuthTokens) -> dict:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(self.profile_endpoint, headers=self.profile_headers(tokens))
        if response.status_code >= 400:
            raise OAuthError(f"{self.name} profile lookup failed with {response.status_code}")
        return response.json()

    @abc.abstractmethod
    def extract_identity(self, profile: dict) -> OAuthIdentity:
        """Pull the display name and public profile URL out of a profile payload."""


class TwitchProvider(OAuthProvider):
    name = "twitch"
    authorize_endpoint = "https://id.twitch.tv/oauth2/authorize"
    token_endpoint = "https://id.twitch.tv/oauth2/token"
    profile_endpoint = "https://api.twitch.tv/helix/users"
    scopes = ("user:read:email",)

    def profile_headers(self, tokens: OAuthTokens) -> dict[str, str]:
        headers = super().profile_headers(tokens)
        headers["Client-Id"] = self.client_id or ""
        return headers

    def extract_identity(self, profile: dict) -> OAuthIdentity:
        user = (profile.get("data") or [{}])[0]
        login = user.get("login", "")
        return OAuthIdentity(user.get("display_name") or login, f"https://twitch.tv/{login}")


class SpotifyProvider(OAuthProvider):
    name = "spotify"
    authorize_endpoint = "https://accounts.spotify.com/authorize"
    token_endpoint = "https://accounts.spotify.com/api/token"
    profile_endpoint = "https://api.spotify.com/v1/me"
    scopes = ("user-read-private",)

    def extract_identity(self, profile: dict) -> OAuthIdentity:
        url = (profile.get("external_urls") or {}).get("spotify") or f"https://open.spotify.com/user/{profile.get('id', '')}"
        return OAuthIdentity(profile.get("display_name") or profile.get("id", ""), url)


class YouTubeProvider(OAuthProvider):
    name = "youtube"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://www.googleapis.com/youtube/v3/channels?part=snippet&mine=true"
    scopes = ("https://www.googleapis.com/auth/youtube.readonly",)

    def extract_identity(self, profile: dict) -> OAuthIdentity:
        channel = (profile.get("items") or [{}])[0]
        snippet = channel.get("snippet") or {}
        return OAuthIdentity(snippet.get("title", ""), f"https://youtube.com/channel/{channel.get('id', '')}")


class GitHubProvider(OAuthProvider):
    name = "github"
    authorize_endpoint = "https://github.com/login/oauth/authorize"
    token_endpoint = "https://github.com/login/oauth/access_token"
    profile_endpoint = "https://api.github.com/user"
    scopes = ("read:user",)

    def extract_identity(self, profile: dict) -> OAuthIdentity:
        login = profile.get("login", "")
        return OAuthIdentity(login, profile.get("html_url") or f"https://github.com/{login}")


class ProviderRegistry:
    """Name -> provider lookup; new platforms register an implementation here."""

    def __init__(self) -> None:
        self._providers: dict[str, OAuthProvider] = {}

    def register(self, provider: OAuthProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> OAuthProvider | None:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return sorted(self._providers)


def build_registry() -> ProviderRegistry:
    settings = get_settings()
    registry = ProviderRegistry()
    registry.register(TwitchProvider(settings.twitch_client_id, settings.twitch_client_secret))
    registry.register(SpotifyProvider(settings.spotify_client_id, settings.spotify_client_secret))
    registry.register(YouTubeProvider(settings.youtube_client_id, settings.youtube_client_secret))
    registry.register(GitHubProvider(settings.github_client_id, settings.github_client_secret))
    return registry
