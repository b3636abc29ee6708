"""Dashboard API access."""

from .client import ApiClient, is_token_expired, path_segment

__all__ = ["ApiClient", "is_token_expired", "path_segment"]
