"""
GitHub App handshake schemas
"""
from typing import Any, Optional, Dict, List
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class InvalidState(ValueError):
    """Stored state payload could not be decoded"""


class StateDetails(BaseModel):
    """
    Context bound to a state token across the GitHub redirects.

    Every stored payload is produced by ``encode`` (even the empty context),
    so all entries in the state store share the same JSON shape.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    webhook_uuid: str = Field(default="", alias="webhookUUID")
    domain: str = ""
    app_id: Optional[int] = None
    base_url: str = ""

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def decode(cls, payload: str) -> "StateDetails":
        try:
            return cls.model_validate_json(payload)
        except ValidationError as e:
            raise InvalidState(f"invalid state: {e.error_count()} validation error(s)") from e


class NewAppStateResponse(BaseModel):
    state: str
    webhook_uuid: Optional[str] = Field(default=None, serialization_alias="webhookUUID")


class NewAppManifestResponse(BaseModel):
    """Where the admin UI posts the manifest to create the app on GitHub"""

    url: str
    manifest: Dict[str, Any]


class ManifestConversion(BaseModel):
    """Response of POST /app-manifests/{code}/conversions"""

    id: int
    slug: str
    name: str
    html_url: str
    client_id: str
    client_secret: str
    pem: str
    webhook_secret: Optional[str] = None
    permissions: Dict[str, str] = {}
    events: List[str] = []


class InstallationAccount(BaseModel):
    login: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    type: Optional[str] = None


class RemoteInstallation(BaseModel):
    """Response of GET /app/installations/{installation_id}"""

    id: int
    html_url: Optional[str] = None
    account: InstallationAccount = InstallationAccount()
