"""Core configuration, security and request dependencies."""
