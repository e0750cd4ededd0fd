"""Route modules for the OpsLink API."""
from . import analytics, auth, messages, oauth, profile, servers, users

__all__ = ["analytics", "auth", "messages", "oauth", "profile", "servers", "users"]
