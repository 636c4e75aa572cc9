"""
Pydantic schemas for request/response validation
"""
from handshake.schemas.github_app import (
    StateDetails, InvalidState, NewAppStateResponse, NewAppManifestResponse,
    ManifestConversion, InstallationAccount, RemoteInstallation,
)

__all__ = [
    "StateDetails", "InvalidState", "NewAppStateResponse", "NewAppManifestResponse",
    "ManifestConversion", "InstallationAccount", "RemoteInstallation",
]
