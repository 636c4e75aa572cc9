"""
GitHub App and installation models
"""
from typing import Optional, List
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func
from handshake.core.database import Base
import enum


class GitHubAppDomain(str, enum.Enum):
    """Subsystem a GitHub App is created for"""
    REPO_SYNC = "repoSync"
    WORKFLOW_AUTOMATION = "workflowAutomation"


class GitHubApp(Base):
    """A GitHub App registered through the manifest flow"""

    __tablename__ = "github_apps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # ID assigned by GitHub
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, nullable=False)
    base_url: Mapped[str] = mapped_column(String, nullable=False)  # e.g. https://github.com
    app_url: Mapped[str] = mapped_column(String, nullable=False)  # e.g. https://github.com/apps/my-app
    client_id: Mapped[str] = mapped_column(String, nullable=False)
    client_secret: Mapped[str] = mapped_column(Text, nullable=False)  # encrypted
    webhook_secret: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # encrypted
    private_key: Mapped[str] = mapped_column(Text, nullable=False)  # encrypted PEM
    logo: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    domain: Mapped[GitHubAppDomain] = mapped_column(SQLEnum(GitHubAppDomain), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    __table_args__ = (
        UniqueConstraint('app_id', 'base_url', name='uq_github_app_id_base_url'),
    )

    # Relationships
    installations: Mapped[List["GitHubAppInstallation"]] = relationship(
        "GitHubAppInstallation", back_populates="app", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<GitHubApp {self.slug} ({self.app_id}) at {self.base_url}>"


class GitHubAppInstallation(Base):
    """An installation of a GitHub App on a user or organization account"""

    __tablename__ = "github_app_installs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app_id: Mapped[int] = mapped_column(Integer, ForeignKey("github_apps.id", ondelete="CASCADE"), nullable=False, index=True)
    installation_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    account_login: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    account_avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    account_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    account_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # "User" or "Organization"
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    __table_args__ = (
        UniqueConstraint('app_id', 'installation_id', name='uq_github_app_installation'),
    )

    # Relationships
    app: Mapped["GitHubApp"] = relationship("GitHubApp", back_populates="installations")

    def __repr__(self):
        return f"<GitHubAppInstallation {self.installation_id} for app {self.app_id}>"
