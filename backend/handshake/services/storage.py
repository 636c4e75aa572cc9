"""
Persistence for GitHub Apps, their installations and webhooks
"""
from typing import Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from handshake.core.security import SecretCipher
from handshake.models.github_app import GitHubApp, GitHubAppInstallation
from handshake.models.webhook import Webhook
from handshake.services.github_api import ConvertedApp

logger = logging.getLogger(__name__)

CODE_HOST_KIND_GITHUB = "GITHUB"


class RecordNotFound(LookupError):
    pass


class GitHubAppStore:
    def __init__(self, session_factory: async_sessionmaker, cipher: Optional[SecretCipher] = None):
        self.session_factory = session_factory
        self.cipher = cipher or SecretCipher()

    async def create(self, app: ConvertedApp) -> int:
        """Store a newly converted app, secrets encrypted. Returns the row ID."""
        async with self.session_factory() as db:
            model = GitHubApp(
                app_id=app.app_id,
                name=app.name,
                slug=app.slug,
                base_url=app.base_url,
                app_url=app.app_url,
                client_id=app.client_id,
                client_secret=self.cipher.encrypt(app.client_secret),
                webhook_secret=self.cipher.encrypt(app.webhook_secret),
                private_key=self.cipher.encrypt(app.private_key),
                logo=app.logo,
                domain=app.domain,
            )
            db.add(model)
            await db.commit()
            await db.refresh(model)
            logger.info(f"Stored GitHub App {model.slug} as {model.id}")
            return model.id

    async def get_by_id(self, id: int) -> GitHubApp:
        async with self.session_factory() as db:
            app = await db.get(GitHubApp, id)
        if app is None:
            raise RecordNotFound(f"GitHub App {id} not found")
        return app

    async def install(self, installation: GitHubAppInstallation) -> int:
        """
        Record an installation. Installing the same app on the same account
        again refreshes the existing row.
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(GitHubAppInstallation).where(
                    GitHubAppInstallation.app_id == installation.app_id,
                    GitHubAppInstallation.installation_id == installation.installation_id,
                )
            )
            existing = result.scalar_one_or_none()
            if existing is None:
                db.add(installation)
                model = installation
            else:
                existing.url = installation.url
                existing.account_login = installation.account_login
                existing.account_avatar_url = installation.account_avatar_url
                existing.account_url = installation.account_url
                existing.account_type = installation.account_type
                model = existing
            await db.commit()
            await db.refresh(model)
            logger.info(f"Recorded installation {model.installation_id} of GitHub App {model.app_id}")
            return model.id


class WebhookStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_by_uuid(self, webhook_uuid: str) -> Webhook:
        async with self.session_factory() as db:
            result = await db.execute(select(Webhook).where(Webhook.uuid == webhook_uuid))
            hook = result.scalar_one_or_none()
        if hook is None:
            raise RecordNotFound(f"webhook {webhook_uuid} not found")
        return hook

    async def update(self, hook: Webhook) -> Webhook:
        async with self.session_factory() as db:
            merged = await db.merge(hook)
            await db.commit()
            await db.refresh(merged)
            return merged


class WebhookService:
    """Registers webhook endpoints ahead of the code host knowing about them"""

    def __init__(self, session_factory: async_sessionmaker, cipher: Optional[SecretCipher] = None):
        self.session_factory = session_factory
        self.cipher = cipher or SecretCipher()

    async def create_webhook(
        self,
        name: str,
        code_host_kind: str,
        code_host_urn: str,
        secret: Optional[str] = None,
    ) -> Webhook:
        async with self.session_factory() as db:
            hook = Webhook(
                name=name,
                code_host_kind=code_host_kind,
                code_host_urn=code_host_urn,
                secret=self.cipher.encrypt(secret),
            )
            db.add(hook)
            await db.commit()
            await db.refresh(hook)
            logger.info(f"Created webhook {hook.name} ({hook.uuid}) for {code_host_urn}")
            return hook
