"""
Database models
"""
from handshake.models.github_app import GitHubApp, GitHubAppInstallation, GitHubAppDomain
from handshake.models.github_app_state import GitHubAppState
from handshake.models.webhook import Webhook

__all__ = [
    "GitHubApp",
    "GitHubAppInstallation",
    "GitHubAppDomain",
    "GitHubAppState",
    "Webhook",
]
