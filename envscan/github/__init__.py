"""Code-hosting access."""

from .client import GitHubClient, GitHubError, RemoteFile

__all__ = ["GitHubClient", "GitHubError", "RemoteFile"]
