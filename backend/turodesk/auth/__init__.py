"""Auth module - GitHub login."""

from .github import GitHubAuth

__all__ = ['GitHubAuth']
