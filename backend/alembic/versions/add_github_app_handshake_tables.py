"""add github app handshake tables

Revision ID: add_github_app_tables
Revises:
Create Date: 2026-10-17 10:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'add_github_app_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'github_apps',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('app_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('base_url', sa.String(), nullable=False),
        sa.Column('app_url', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=False),
        sa.Column('client_secret', sa.Text(), nullable=False),
        sa.Column('webhook_secret', sa.Text(), nullable=True),
        sa.Column('private_key', sa.Text(), nullable=False),
        sa.Column('logo', sa.String(), nullable=True),
        sa.Column('domain', sa.Enum('REPO_SYNC', 'WORKFLOW_AUTOMATION', name='githubappdomain'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('app_id', 'base_url', name='uq_github_app_id_base_url'),
    )

    op.create_table(
        'github_app_installs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('app_id', sa.Integer(), sa.ForeignKey('github_apps.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('installation_id', sa.Integer(), nullable=False, index=True),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('account_login', sa.String(), nullable=True),
        sa.Column('account_avatar_url', sa.String(), nullable=True),
        sa.Column('account_url', sa.String(), nullable=True),
        sa.Column('account_type', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('app_id', 'installation_id', name='uq_github_app_installation'),
    )

    op.create_table(
        'webhooks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('uuid', sa.String(36), nullable=False, unique=True, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('code_host_kind', sa.String(), nullable=False),
        sa.Column('code_host_urn', sa.String(), nullable=False),
        sa.Column('secret', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'github_app_states',
        sa.Column('state', sa.String(64), primary_key=True, index=True),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False, index=True),
    )


def downgrade():
    op.drop_table('github_app_states')
    op.drop_table('webhooks')
    op.drop_table('github_app_installs')
    op.drop_table('github_apps')
    sa.Enum(name='githubappdomain').drop(op.get_bind(), checkfirst=True)
