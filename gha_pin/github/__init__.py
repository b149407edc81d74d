from .client import GitHubClient, Tag, DEFAULT_API_URL, DEFAULT_TIMEOUT

__all__ = ["GitHubClient", "Tag", "DEFAULT_API_URL", "DEFAULT_TIMEOUT"]
