"""
LedgerCore - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledgercore.config import settings
from ledgercore.database import init_db, close_db, async_session_maker, atomic
from ledgercore.models.company import GAAPStandard
from ledgercore.routers import accounting, financial_statements
from ledgercore.services.schedule_catalog import seed_schedule_mappings
from ledgercore.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed_mapping_catalog():
    """
    Seed the default statement mapping catalog on startup.
    Seeding is idempotent, so restarts leave existing rows alone.
    """
    async with async_session_maker() as session:
        async with atomic(session):
            inserted = await seed_schedule_mappings(session, GAAPStandard(settings.default_gaap_standard))
        logger.info(f"Schedule mapping catalog ready ({inserted} new rows)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")
        await seed_mapping_catalog()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Double-entry ledger and financial statement engine",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register application error handlers
setup_exception_handlers(app)


# ===========================================
# ROUTERS
# ===========================================

app.include_router(accounting.companies_router)
app.include_router(accounting.router)
app.include_router(financial_statements.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "environment": settings.app_env,
    }


@app.get("/api/v1")
async def api_root():
    """API v1 root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name} API v1",
        "endpoints": {
            "companies": "/api/v1/companies",
            "chart_of_accounts": "/api/v1/companies/{company_id}/chart-of-accounts",
            "fiscal_years": "/api/v1/companies/{company_id}/fiscal-years",
            "journal_entries": "/api/v1/companies/{company_id}/journal-entries",
            "gl_posting": "/api/v1/companies/{company_id}/gl/post",
            "trial_balance": "/api/v1/companies/{company_id}/trial-balance",
            "financial_statements": "/api/v1/companies/{company_id}/financial-statements",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
