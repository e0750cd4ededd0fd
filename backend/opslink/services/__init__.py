"""Service layer for OpsLink domain operations."""
