"""Discover environment variables in plugin packages and keep agentConfig in sync."""

__version__ = "0.1.0"
