#!/usr/bin/env python3
"""
Ordinal Settlement FastAPI Backend

REST API used by the marketplace to verify purchase PSBTs against listing
terms, relay signed transactions and suggest fee rates.
"""

import logging
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.logging_config import CorrelationIDMiddleware, configure_structured_logging
from api.models.settlement_models import HealthStatus
from api.routes.settlement import router as settlement_router
from settlement import __version__
from settlement.config import get_config, reload_config, setup_logging

# =============================================================================
# Configuration Management
# =============================================================================

# Load .env file (override=True to prioritize .env over existing env vars)
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)
    config = reload_config()
    logging.info(f"Config loaded from .env file at {env_path} (override=True)")
else:
    config = get_config()
    logging.info("Config loaded from environment variables (no .env file found)")

# =============================================================================
# Structured Logging Configuration
# =============================================================================

configure_structured_logging(mode=config.log_mode)
setup_logging(level=config.log_level, mode=config.log_mode, log_dir=config.log_dir)
logging.basicConfig(
    level=getattr(logging, config.log_level.upper()),
    format="%(asctime)s [%(levelname)s] %(message)s",
)

# Track startup time for /health endpoint
STARTUP_TIME = datetime.now()

# =============================================================================
# FastAPI App Initialization
# =============================================================================

app = FastAPI(
    title="Ordinal Settlement API",
    description="PSBT verification, transaction relay and fee suggestions for ordinal purchases",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIDMiddleware)

app.include_router(settlement_router)

# =============================================================================
# GET /health
# =============================================================================


@app.get("/health", response_model=HealthStatus)
async def health_check():
    """Liveness check with version, network and uptime."""
    return HealthStatus(
        status="ok",
        version=__version__,
        network=get_config().network,
        uptime_seconds=round((datetime.now() - STARTUP_TIME).total_seconds(), 2),
    )


@app.on_event("startup")
async def startup_event():
    """Log startup information"""
    current = get_config()
    logging.info("=" * 60)
    logging.info("Ordinal Settlement API starting...")
    logging.info(f"Network: {current.network}")
    logging.info(f"Relay: {current.relay_config().base_url}")
    logging.info(f"Listening on: {current.api_host}:{current.api_port}")
    logging.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    """Log shutdown information"""
    logging.info("Ordinal Settlement API shutting down...")


# =============================================================================
# Run with uvicorn (for development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=config.api_host,
        port=config.api_port,
        reload=True,
        log_level=config.log_level.lower(),
    )
