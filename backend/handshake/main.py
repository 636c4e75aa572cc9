"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager
import logging
import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from handshake.core.config import settings
from handshake.core.database import init_db, close_db, get_session_factory
from handshake.core.security import SecretCipher
from handshake.api.v1.router import api_router
from handshake.services.domain_router import LandingPages
from handshake.services.github_api import GitHubAppsClient
from handshake.services.handshake import GitHubAppHandshake, HandshakeError, handshake_error_handler
from handshake.services.state_store import DatabaseStateCache, MemoryStateCache, StateCache, StateTokens
from handshake.services.storage import GitHubAppStore, WebhookService, WebhookStore

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


def build_handshake(session_factory, http_client: httpx.AsyncClient) -> GitHubAppHandshake:
    """Wire the handshake to its state store, storage and GitHub client"""
    ttl = settings.GITHUB_APP_STATE_TTL_SECONDS
    if settings.GITHUB_APP_STATE_BACKEND == "memory":
        logger.warning("Using in-memory GitHub App state store; state is lost on restart and not shared between workers")
        cache: StateCache = MemoryStateCache(ttl)
    elif settings.GITHUB_APP_STATE_BACKEND == "database":
        cache = DatabaseStateCache(session_factory, ttl)
    else:
        raise ValueError(f"Unknown GITHUB_APP_STATE_BACKEND: {settings.GITHUB_APP_STATE_BACKEND!r}")

    cipher = SecretCipher(settings.SECRETS_ENCRYPTION_KEY)
    if not cipher.enabled:
        logger.warning("SECRETS_ENCRYPTION_KEY is not set; GitHub App secrets are stored unencrypted")

    return GitHubAppHandshake(
        state_tokens=StateTokens(cache, settings.GITHUB_APP_STATE_ENTROPY_BYTES),
        github=GitHubAppsClient(http_client),
        apps=GitHubAppStore(session_factory, cipher),
        webhooks=WebhookStore(session_factory),
        webhook_service=WebhookService(session_factory, cipher),
        install_page_delay=settings.GITHUB_APP_INSTALL_PAGE_DELAY_SECONDS,
        installation_delay=settings.GITHUB_APP_INSTALLATION_DELAY_SECONDS,
        default_base_url=settings.GITHUB_DEFAULT_BASE_URL,
        landing_pages=LandingPages(
            github_apps=settings.SITE_ADMIN_GITHUB_APPS_PATH,
            workflow_automation=settings.SITE_ADMIN_WORKFLOW_AUTOMATION_PATH,
        ),
        cipher=cipher,
        route_prefix=settings.GITHUB_APP_ROUTE_PREFIX,
        external_url=settings.EXTERNAL_URL,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    try:
        logger.info("Starting application...")
        await init_db()
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        logger.error("Please check DATABASE_URL in the .env file and that PostgreSQL is running")
        raise

    http_client = httpx.AsyncClient(timeout=settings.GITHUB_HTTP_TIMEOUT_SECONDS)
    app.state.github_app_handshake = build_handshake(get_session_factory(), http_client)
    logger.info("Application started successfully")
    yield
    logger.info("Shutting down application...")
    await http_client.aclose()
    await close_db()
    logger.info("Application shut down successfully")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="GitHub App creation and installation handshake",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(HandshakeError, handshake_error_handler)

# Include API routes
app.include_router(api_router, prefix=settings.GITHUB_APP_ROUTE_PREFIX)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": settings.APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "handshake.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
